"""
Runtime configuration

Values come from the environment (a local .env file is loaded first).
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")

# Tax as a fraction applied to the discounted subtotal (0.09 == 9%).
# Bills are tax free unless this is set.
TAX_RATE = float(os.getenv("TAX_RATE", "0"))

# Size of the live "recent orders" feed.
RECENT_ORDERS_LIMIT = int(os.getenv("RECENT_ORDERS_LIMIT", "10"))

# How many times a merge tries to delete each source bill before giving up.
MERGE_DELETE_ATTEMPTS = int(os.getenv("MERGE_DELETE_ATTEMPTS", "3"))

EXPENSE_CATEGORIES = (
    "Ingredients",
    "Utilities",
    "Rent",
    "Salaries",
    "Equipment",
    "Maintenance",
    "Marketing",
    "Miscellaneous",
)
