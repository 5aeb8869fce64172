from django.db import models


class UserRole(models.TextChoices):
    ADMIN   = "admin",   "Admin"
    MANAGER = "manager", "Manager"


# Permission codes, one read/write pair per resource
READ_PRODUCTS            = "read_products"
WRITE_PRODUCTS           = "write_products"
READ_PRODUCT_VARIANTS    = "read_product_variants"
WRITE_PRODUCT_VARIANTS   = "write_product_variants"
READ_CATEGORIES          = "read_categories"
WRITE_CATEGORIES         = "write_categories"
READ_COLLECTIONS         = "read_collections"
WRITE_COLLECTIONS        = "write_collections"
READ_BRANDS              = "read_brands"
WRITE_BRANDS             = "write_brands"
READ_USERS               = "read_users"
WRITE_USERS              = "write_users"
READ_OPTIONS             = "read_options"
WRITE_OPTIONS            = "write_options"
READ_OPTION_VALUES       = "read_option_values"
WRITE_OPTION_VALUES      = "write_option_values"
READ_IMAGES              = "read_images"
WRITE_IMAGES             = "write_images"
READ_BRAND_REQUESTS      = "read_brand_requests"
WRITE_BRAND_REQUESTS     = "write_brand_requests"
READ_ORDERS              = "read_orders"
WRITE_ORDERS             = "write_orders"

ALL_PERMISSIONS = frozenset({
    READ_PRODUCTS, WRITE_PRODUCTS,
    READ_PRODUCT_VARIANTS, WRITE_PRODUCT_VARIANTS,
    READ_CATEGORIES, WRITE_CATEGORIES,
    READ_COLLECTIONS, WRITE_COLLECTIONS,
    READ_BRANDS, WRITE_BRANDS,
    READ_USERS, WRITE_USERS,
    READ_OPTIONS, WRITE_OPTIONS,
    READ_OPTION_VALUES, WRITE_OPTION_VALUES,
    READ_IMAGES, WRITE_IMAGES,
    READ_BRAND_REQUESTS, WRITE_BRAND_REQUESTS,
    READ_ORDERS, WRITE_ORDERS,
})

ROLE_PERMISSIONS = {
    UserRole.ADMIN.value: ALL_PERMISSIONS,
    UserRole.MANAGER.value: frozenset({
        READ_PRODUCTS, WRITE_PRODUCTS,
        READ_PRODUCT_VARIANTS, WRITE_PRODUCT_VARIANTS,
        READ_IMAGES, WRITE_IMAGES,
        READ_ORDERS, WRITE_ORDERS,
        READ_CATEGORIES,
        READ_COLLECTIONS,
        READ_OPTIONS,
        READ_OPTION_VALUES,
    }),
}


def user_roles(user):
    """
    Role names of a user. Roles are Django auth groups named after the role;
    superusers are always admins. The result is memoized on the user object.
    """
    if not (user and user.is_authenticated):
        return frozenset()
    cached = getattr(user, "_backoffice_roles", None)
    if cached is not None:
        return cached
    names = set(
        user.groups.filter(name__in=UserRole.values).values_list("name", flat=True)
    )
    if user.is_superuser:
        names.add(UserRole.ADMIN.value)
    roles = frozenset(names)
    user._backoffice_roles = roles
    return roles


def primary_role(user):
    roles = user_roles(user)
    if UserRole.ADMIN.value in roles:
        return UserRole.ADMIN.value
    if UserRole.MANAGER.value in roles:
        return UserRole.MANAGER.value
    return None


def is_admin(user) -> bool:
    return UserRole.ADMIN.value in user_roles(user)


def is_manager(user) -> bool:
    return UserRole.MANAGER.value in user_roles(user)


def has_permission(user, code: str) -> bool:
    return any(code in ROLE_PERMISSIONS.get(role, ()) for role in user_roles(user))
