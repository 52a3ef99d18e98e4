# spentiva/services/catalog.py
"""Static catalogs: predefined expense categories, payment methods and the
categories seeded into every new tracker."""
import time
from typing import Dict, List

UNSPECIFIED_PAYMENT_METHOD = "User not provided payment method"

PAYMENT_METHODS: List[str] = [
    "Credit Card",
    "Debit Card",
    "Cash",
    "UPI",
    "Net Banking",
    "Wallet",
    UNSPECIFIED_PAYMENT_METHOD,
]

EXPENSE_CATEGORIES: Dict[str, Dict] = {
    "Food & Dining": {"id": "food-dining", "name": "Food & Dining", "subcategories": ["Foods", "Grocery & Vegetables"]},
    "Home & Living": {
        "id": "home-living",
        "name": "Home & Living",
        "subcategories": ["Maid", "Bills", "Home Maintenance", "Interior Work"],
    },
    "Health & Wellness": {
        "id": "health-wellness",
        "name": "Health & Wellness",
        "subcategories": ["Medical", "Insurance", "Grooming and Parlour", "Vaccinations/Doctor"],
    },
    "Baby Care": {
        "id": "baby-care",
        "name": "Baby Care",
        "subcategories": ["Baby essentials", "Nanny", "Childcare", "Baby/Mother Medicine", "Baby Toys/Shopping/Other"],
    },
    "Transportation": {
        "id": "transportation",
        "name": "Transportation",
        "subcategories": ["Office Traveling", "Petrol", "Car/Bike/Scooty Service", "Insurance", "Parking"],
    },
    "Investments": {
        "id": "investments",
        "name": "Investments",
        "subcategories": [
            "Mutual Funds/SIP/SWP/ELSS",
            "Gold/Diamond/Silver/Jewelry",
            "Retirement Funds",
            "Emergency Funds",
            "PPF",
            "NPS",
            "Other Investments",
        ],
    },
    "Lifestyle": {"id": "lifestyle", "name": "Lifestyle", "subcategories": ["Travels", "Shopping", "Entertainment", "Gifts"]},
    "Debt & Loans": {
        "id": "debt-loans",
        "name": "Debt & Loans",
        "subcategories": ["EMIs", "Loans", "Extra Loan Payment", "Loan or Saving Fees/Charges/Penalty"],
    },
    "Miscellaneous": {
        "id": "miscellaneous",
        "name": "Miscellaneous",
        "subcategories": ["One Time Expense/Unexpected Others", "Extra Tax Payments/CA Payments", "Accidental", "Others"],
    },
    "Professional": {
        "id": "professional",
        "name": "Professional",
        "subcategories": ["Software", "Learning & Certifications", "Domain/Hosting", "Email", "Others"],
    },
    "Personal & Family": {
        "id": "personal-family",
        "name": "Personal & Family",
        "subcategories": ["Family Support", "Credit Card Fees/GST/Other Charges", "Donation"],
    },
    "Income": {"id": "income", "name": "Income", "subcategories": ["Salary", "Freelance"]},
}

# seeded into every new tracker, in this order
DEFAULT_TRACKER_CATEGORIES = [
    ("Food & Dining", ["Groceries", "Restaurants", "Fast Food"]),
    ("Transportation", ["Fuel", "Public Transport", "Taxi/Uber"]),
    ("Shopping", ["Clothing", "Electronics", "Books"]),
    ("Entertainment", ["Movies", "Games", "Hobbies"]),
    ("Bills & Utilities", ["Electricity", "Water", "Internet"]),
]


def epoch_ms() -> int:
    return int(time.time() * 1000)


def default_tracker_categories() -> List[Dict]:
    """Return [{"name", "subcategories": [{"id", "name"}]}] with ids "<ms>-1" .. "<ms>-15"."""
    stamp = epoch_ms()
    n = 0
    out = []
    for name, subs in DEFAULT_TRACKER_CATEGORIES:
        items = []
        for sub in subs:
            n += 1
            items.append({"id": f"{stamp}-{n}", "name": sub})
        out.append({"name": name, "subcategories": items})
    return out


def assign_subcategory_ids(subcategories: List[Dict]) -> List[Dict]:
    """Give every subcategory without an id a "<ms>-<n>" id; existing ids are kept."""
    stamp = epoch_ms()
    out = []
    for n, sub in enumerate(subcategories, start=1):
        sub_id = sub.get("id") or f"{stamp}-{n}"
        out.append({"id": str(sub_id), "name": sub["name"]})
    return out
