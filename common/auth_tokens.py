from rest_framework import exceptions
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from brands.models import Brand
from common.roles import primary_role


def issue_tokens(user, brand=None, **claims):
    """
    Fresh token pair for user with brand_id and role claims, plus any extra
    claims (e.g. impersonator_id). Returns the login response payload.
    """
    role = primary_role(user)
    refresh = RefreshToken.for_user(user)
    refresh["brand_id"] = brand.id if brand else None
    refresh["role"] = role
    for name, value in claims.items():
        refresh[name] = value
    return {
        "refresh": str(refresh),
        "access": str(refresh.access_token),
        "brand": {"id": brand.id, "name": brand.name} if brand else None,
        "role": role,
    }


class BrandAwareTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Accepts username, password, and optional brand_id.
    Embeds brand + role in the resulting tokens.
    """

    def validate(self, attrs):
        data = super().validate(attrs)

        request = self.context.get("request")
        brand_id = request.data.get("brand_id") if request is not None else None

        brand = Brand.objects.resolve_for(self.user, brand_id)
        if brand_id and brand is None:
            raise exceptions.AuthenticationFailed("Invalid brand")

        # replace the tokens built by super() with ones carrying our claims
        data.update(issue_tokens(self.user, brand))
        return data
