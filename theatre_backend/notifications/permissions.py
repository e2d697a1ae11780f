from theatre_backend.core.permissions import ALL_ROLES, RBACPermission


class NotificationPermission(RBACPermission):
    """RBAC für Benachrichtigungen.

    Alle Rollen dürfen zugreifen, die Views liefern aber nur Einträge des
    eigenen Staff-Profils (ohne Profil: 403).
    """

    read_roles = ALL_ROLES
    write_roles = ALL_ROLES
