# Overview: Fixed vocabularies shared by models, validation and services.

"""
Catalog, payment and ledger vocabularies.

Values are stored verbatim in the database, so renaming an id here needs a
data migration.
"""

# =============================================================================
# CATALOG
# =============================================================================

CATEGORIES = [
    ("feeds", "Feeds"),
    ("fertilizers", "Fertilizers"),
    ("pesticides", "Pesticides"),
    ("herbicides", "Herbicides"),
    ("veterinary", "Veterinary"),
    ("seeds", "Seeds"),
    ("poultry", "Poultry"),
    ("livestock", "Livestock"),
]

UNITS = [
    ("kg", "Kilograms", "kg"),
    ("liters", "Liters", "L"),
    ("bags", "Bags", "bags"),
    ("packets", "Packets", "pkt"),
    ("pieces", "Pieces", "pcs"),
    ("bottles", "Bottles", "btl"),
    ("boxes", "Boxes", "box"),
]

VALID_CATEGORIES = [c[0] for c in CATEGORIES]
VALID_UNITS = [u[0] for u in UNITS]

ITEM_TYPE_UNIT = "unit"
ITEM_TYPE_BULK = "bulk"
VALID_ITEM_TYPES = [ITEM_TYPE_UNIT, ITEM_TYPE_BULK]


# =============================================================================
# PAYMENT
# =============================================================================

PAYMENT_CASH = "cash"
PAYMENT_MPESA = "mpesa"
PAYMENT_AIRTEL = "airtel"
PAYMENT_BANK = "bank"
PAYMENT_CREDIT = "credit"

VALID_PAYMENT_METHODS = [
    PAYMENT_CASH,
    PAYMENT_MPESA,
    PAYMENT_AIRTEL,
    PAYMENT_BANK,
    PAYMENT_CREDIT,
]

# Methods accepted when a customer settles an outstanding balance.
VALID_CREDIT_PAYMENT_METHODS = [m for m in VALID_PAYMENT_METHODS if m != PAYMENT_CREDIT]

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_REFUNDED = "refunded"
PAYMENT_STATUS_PARTIAL = "partial"


# =============================================================================
# CUSTOMERS & CREDIT
# =============================================================================

CUSTOMER_RETAIL = "retail"
CUSTOMER_WHOLESALE = "wholesale"
CUSTOMER_VIP = "vip"
VALID_CUSTOMER_TYPES = [CUSTOMER_RETAIL, CUSTOMER_WHOLESALE, CUSTOMER_VIP]

CREDIT_SALE = "credit_sale"
CREDIT_PAYMENT = "payment"
CREDIT_ADJUSTMENT = "adjustment"
VALID_CREDIT_TYPES = [CREDIT_SALE, CREDIT_PAYMENT, CREDIT_ADJUSTMENT]


# =============================================================================
# USERS
# =============================================================================

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"
VALID_ROLES = [ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER]


# =============================================================================
# STOCK SOURCES & RECEIPTS
# =============================================================================

PRICE_SOURCE_RESTOCK = "restock"
PRICE_SOURCE_RECEIPT = "receipt"
PRICE_SOURCE_INITIAL = "initial"

RECEIPT_MODE_PRICE_HISTORY = "price_history"
RECEIPT_MODE_CURRENT_STOCK = "current_stock"
VALID_RECEIPT_MODES = [RECEIPT_MODE_PRICE_HISTORY, RECEIPT_MODE_CURRENT_STOCK]
