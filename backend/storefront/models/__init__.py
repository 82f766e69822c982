from storefront.models.account import User, Admin  # noqa: F401
from storefront.models.password_reset import PasswordResetToken  # noqa: F401
