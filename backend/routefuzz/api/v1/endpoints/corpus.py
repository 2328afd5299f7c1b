"""
Corpus endpoints.
"""
from fastapi import APIRouter

from routefuzz.services.corpus import available_assets

router = APIRouter()


@router.get("")
def list_corpus():
    """Registered corpus categories and names, usable as `use_payloads` keys."""
    assets = available_assets()
    return {
        "categories": assets,
        "keys": ["all"] + [
            f"{category}.{name}" for category, names in assets.items() for name in ["all"] + names
        ],
    }
