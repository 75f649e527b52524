"""
Protection module - Do-not-translate terms and glossary handling
"""

from batchlingo.protection.terms import (
    CURLY_PLACEHOLDER,
    collect_protected_terms,
    split_protected,
    find_glossary_translation,
    apply_glossary_terms,
    restore_placeholders,
)
