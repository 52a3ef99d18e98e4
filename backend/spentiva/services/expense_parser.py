# spentiva/services/expense_parser.py
"""Turn chat-style text ("spent 50 on lunch, taxi 150 cash") into expense drafts.

Keyword matching against the tracker's own categories. Each comma/";"/"and"
separated chunk with a number becomes one draft.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from spentiva.services.catalog import UNSPECIFIED_PAYMENT_METHOD

logger = logging.getLogger(__name__)

# amount: 1,234.56 / 1234.56 / 1234 / 1 234,56 with optional currency marker
_NUMBER_RE = re.compile(
    r"(?:(?<=\s)|^|(?<=[₹$€£]))(?:rs\.?\s*|inr\s*)?([0-9]{1,3}(?:,[0-9]{3})+(?:\.[0-9]{1,2})?|[0-9]+(?:[.,][0-9]{1,2})?)(?:\s*(?:rs|inr|rupees|bucks|dollars|usd|eur|gbp)\b)?",
    re.I,
)

# chunk separators; a comma followed by three digits is a thousands separator
_SPLIT_RE = re.compile(r"\s*(?:;|\n|,(?!\d{3}\b)|\band\b|\balso\b|\bthen\b)\s*", re.I)

_PAYMENT_KEYWORDS: List[Tuple[str, str]] = [
    (r"credit\s*card|\bcc\b", "Credit Card"),
    (r"debit\s*card", "Debit Card"),
    (r"net\s*banking|netbanking|neft|imps", "Net Banking"),
    (r"\bupi\b|gpay|google\s*pay|phonepe|paytm|bhim", "UPI"),
    (r"\bwallet\b", "Wallet"),
    (r"\bcash\b", "Cash"),
]

# everyday words -> (category hint, subcategory hint), resolved against the tracker's categories
_SYNONYMS: Dict[str, Tuple[str, str]] = {
    "lunch": ("Food & Dining", "Restaurants"),
    "dinner": ("Food & Dining", "Restaurants"),
    "breakfast": ("Food & Dining", "Restaurants"),
    "restaurant": ("Food & Dining", "Restaurants"),
    "coffee": ("Food & Dining", "Restaurants"),
    "food": ("Food & Dining", "Restaurants"),
    "pizza": ("Food & Dining", "Fast Food"),
    "burger": ("Food & Dining", "Fast Food"),
    "snacks": ("Food & Dining", "Fast Food"),
    "grocery": ("Food & Dining", "Groceries"),
    "vegetables": ("Food & Dining", "Groceries"),
    "milk": ("Food & Dining", "Groceries"),
    "petrol": ("Transportation", "Fuel"),
    "diesel": ("Transportation", "Fuel"),
    "gas": ("Transportation", "Fuel"),
    "cab": ("Transportation", "Taxi/Uber"),
    "uber": ("Transportation", "Taxi/Uber"),
    "ola": ("Transportation", "Taxi/Uber"),
    "auto": ("Transportation", "Taxi/Uber"),
    "bus": ("Transportation", "Public Transport"),
    "metro": ("Transportation", "Public Transport"),
    "train": ("Transportation", "Public Transport"),
    "clothes": ("Shopping", "Clothing"),
    "shirt": ("Shopping", "Clothing"),
    "shoes": ("Shopping", "Clothing"),
    "phone": ("Shopping", "Electronics"),
    "laptop": ("Shopping", "Electronics"),
    "book": ("Shopping", "Books"),
    "movie": ("Entertainment", "Movies"),
    "netflix": ("Entertainment", "Movies"),
    "game": ("Entertainment", "Games"),
    "electricity": ("Bills & Utilities", "Electricity"),
    "wifi": ("Bills & Utilities", "Internet"),
    "broadband": ("Bills & Utilities", "Internet"),
}

_FILLER = {
    "spent", "spend", "paid", "pay", "bought", "buy", "for", "on", "of", "a", "an", "the", "my", "rs", "inr",
    "rupees", "via", "using", "with", "by", "in", "at", "to", "got", "some", "i", "me",
}

NO_AMOUNT_MESSAGE = "Could not understand the expense. Please provide at least amount and category."


def _normalize_amount(token: str) -> Optional[float]:
    s = token.replace(" ", "").replace(" ", "")
    if "," in s and re.match(r"^[0-9]+,[0-9]{1,2}$", s):
        s = s.replace(",", ".")
    else:
        s = s.replace(",", "")
    try:
        return float(s)
    except ValueError:
        return None


def _largest_amount(chunk: str):
    """Biggest number in the chunk ("2 shirts 1500" is 1500), with its match."""
    best, best_value = None, None
    for m in _NUMBER_RE.finditer(chunk):
        value = _normalize_amount(m.group(1))
        if value is not None and (best_value is None or value > best_value):
            best, best_value = m, value
    return best, best_value


def _words(text: str) -> List[str]:
    return re.findall(r"[a-z]+", text.lower())


def _singular(word: str) -> str:
    if len(word) > 3 and word.endswith("ies"):
        return word[:-3] + "y"
    if len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def _name_tokens(name: str) -> List[str]:
    return [_singular(w) for w in _words(name) if w not in ("and", "or")]


def detect_payment_method(text: str) -> str:
    for pattern, method in _PAYMENT_KEYWORDS:
        if re.search(pattern, text, re.I):
            return method
    return UNSPECIFIED_PAYMENT_METHOD


def _find_by_name(categories: List[Dict[str, Any]], cat_name: str, sub_name: str):
    for cat in categories:
        for sub in cat.get("subcategories") or []:
            if sub["name"].lower() == sub_name.lower():
                return cat, sub["name"]
    for cat in categories:
        if cat["name"].lower() == cat_name.lower():
            subs = cat.get("subcategories") or []
            return cat, subs[0]["name"] if subs else cat["name"]
    return None, None


def match_category(text: str, categories: List[Dict[str, Any]]):
    """Return (category dict, subcategory name) or (None, None)."""
    words = {_singular(w) for w in _words(text)}

    for cat in categories:
        for sub in cat.get("subcategories") or []:
            if any(tok in words for tok in _name_tokens(sub["name"]) if len(tok) > 2):
                return cat, sub["name"]

    for cat in categories:
        tokens = [t for t in _name_tokens(cat["name"]) if len(t) > 2]
        if tokens and any(t in words for t in tokens):
            subs = cat.get("subcategories") or []
            return cat, subs[0]["name"] if subs else cat["name"]

    for word in _words(text):
        hint = _SYNONYMS.get(word) or _SYNONYMS.get(_singular(word))
        if hint:
            cat, sub = _find_by_name(categories, *hint)
            if cat is not None:
                return cat, sub
    return None, None


def _guess_category_word(chunk: str) -> str:
    m = re.search(r"\b(?:on|for)\s+([a-z][a-z ]*?)(?:\s+(?:via|using|with|by|in|at)\b|$)", chunk, re.I)
    if m:
        return m.group(1).strip()
    rest = [w for w in _words(chunk) if w not in _FILLER]
    return " ".join(rest[:2]) if rest else "Other"


def split_chunks(text: str) -> List[str]:
    return [c for c in _SPLIT_RE.split(text or "") if c and c.strip()]


def parse_expenses(text: str, categories: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Returns {"expenses": [...]} on success, otherwise
    {"error": str, "message": str} (plus "missingCategories" for unknown ones).
    """
    now = now or datetime.utcnow()
    drafts: List[Dict[str, Any]] = []
    missing: List[str] = []

    for chunk in split_chunks(text):
        m, amount = _largest_amount(chunk)
        if amount is None or amount <= 0:
            continue
        payment = detect_payment_method(chunk)
        label = (chunk[: m.start()] + " " + chunk[m.end():]).strip()
        cat, sub = match_category(label, categories)
        if cat is None:
            word = _guess_category_word(label)
            if word not in missing:
                missing.append(word)
            continue
        drafts.append({
            "amount": amount,
            "category": cat["name"],
            "subcategory": sub,
            "categoryId": cat["id"],
            "paymentMethod": payment,
            "description": chunk.strip(),
            "timestamp": now.isoformat(),
        })

    if missing:
        return {
            "error": "Category not found",
            "message": f"Please add these categories first: {', '.join(missing)}",
            "missingCategories": missing,
        }
    if not drafts:
        return {"error": "Parsing failed", "message": NO_AMOUNT_MESSAGE}

    logger.debug("parsed %s expense draft(s) from %r", len(drafts), text)
    return {"expenses": drafts}


def assistant_reply(drafts: List[Dict[str, Any]], currency_symbol: str = "") -> str:
    parts = [f"{currency_symbol}{d['amount']:g} for {d['subcategory']} ({d['category']})" for d in drafts]
    return "Parsed " + "; ".join(parts)
