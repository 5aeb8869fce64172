# common/auth_views.py
from rest_framework_simplejwt.views import TokenObtainPairView
from .auth_tokens import BrandAwareTokenObtainPairSerializer


class BrandAwareTokenObtainPairView(TokenObtainPairView):
    serializer_class = BrandAwareTokenObtainPairSerializer
