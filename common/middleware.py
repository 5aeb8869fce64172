# common/middleware.py
import logging

from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

from brands.models import Brand

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"


class BrandContextMiddleware:
    """
    Attaches request.brand for API calls carrying a JWT. The brand comes from
    the token's brand_id claim, then the X-Brand-Id header, then the user's
    first brand. Never rejects a request; DRF permission classes do that.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.brand = None
        if request.path.startswith(API_PREFIX):
            request.brand = self._resolve(request)
        return self.get_response(request)

    def _resolve(self, request):
        try:
            auth_result = JWTAuthentication().authenticate(request)
        except (InvalidToken, TokenError, AuthenticationFailed):
            return None
        if not auth_result:
            return None
        user, token = auth_result
        brand_id = token.payload.get("brand_id") or request.headers.get("X-Brand-Id")
        brand = Brand.objects.resolve_for(user, brand_id)
        if brand_id and brand is None:
            logger.info("User %s asked for brand %s outside their memberships", user.pk, brand_id)
        return brand
