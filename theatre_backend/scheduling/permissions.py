from theatre_backend.core.permissions import ALL_ROLES, PLANNING_ROLES, ROLE_ADMIN, RBACPermission


class OperationPermission(RBACPermission):
    """RBAC für OP-Planung.

    - admin: planen, absagen, abschließen, auflisten
    - scheduler: planen, absagen, abschließen, auflisten
    - staff: kein Zugriff
    """

    read_roles = PLANNING_ROLES
    write_roles = PLANNING_ROLES


class AvailableResourcesPermission(RBACPermission):
    """RBAC für verfügbare Ressourcen (nur GET).

    - admin, scheduler: read
    """

    read_roles = PLANNING_ROLES


class DailySchedulePermission(RBACPermission):
    """RBAC für den Tagesplan.

    - staff: eigener Plan
    - admin, scheduler: Plan eines beliebigen Mitarbeiters (?staff_id=)
    """

    read_roles = ALL_ROLES


class WeeklyAssignmentsPermission(RBACPermission):
    """RBAC für die Wochenauslastung (nur GET).

    - admin, scheduler: read
    """

    read_roles = PLANNING_ROLES


class OTRoomPermission(RBACPermission):
    """RBAC für OP-Säle.

    - admin: alle Rechte
    - scheduler, staff: nur GET
    """

    read_roles = ALL_ROLES
    write_roles = frozenset({ROLE_ADMIN})
