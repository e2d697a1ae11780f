from django.urls import include, path

from . import views

app_name = 'core'

auth_patterns = [
    path('login/', views.LoginView.as_view(), name='login'),
    path('refresh/', views.RefreshView.as_view(), name='refresh'),
    path('me/', views.MeView.as_view(), name='me'),
]

urlpatterns = [
    path('health/', views.health, name='health'),
    path('auth/', include(auth_patterns)),
]
