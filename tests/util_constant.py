DEFAULT_PASSWORD = "P@ssw0rd!"
DEFAULT_PHONE = "+250788123456"

SELLER_EMAIL = "seller@example.com"
SELLER_FIRST_NAME = "Seller"

BUYER_EMAIL = "buyer@example.com"
BUYER_FIRST_NAME = "Buyer"

ADMIN_EMAIL = "admin@example.com"
