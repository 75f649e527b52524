"""
Language code mappings and utilities.

Standards:
- ISO 639-1: 2-letter language codes (en, zh, es)
- BCP 47: Language + Region codes (en-US, zh-CN, pt-BR)

Documents carry locale codes in the xx-XX form (fr-FR, pt-BR). Spreadsheet
headers and review filenames are not always careful about case, so every code
read from a document passes through normalize_locale() before it is compared.
"""

import re
from pathlib import Path
from typing import Optional, List

# Source: https://en.wikipedia.org/wiki/List_of_ISO_639-1_codes
ISO_639_1 = {
    'af': 'Afrikaans',
    'am': 'Amharic',
    'ar': 'Arabic',
    'ay': 'Aymara',
    'az': 'Azerbaijani',
    'bg': 'Bulgarian',
    'bn': 'Bengali',
    'bo': 'Tibetan',
    'bs': 'Bosnian',
    'ca': 'Catalan',
    'cs': 'Czech',
    'cy': 'Welsh',
    'da': 'Danish',
    'de': 'German',
    'el': 'Greek',
    'en': 'English',
    'es': 'Spanish',
    'et': 'Estonian',
    'eu': 'Basque',
    'fa': 'Persian',
    'ff': 'Fulah',
    'fi': 'Finnish',
    'fr': 'French',
    'ga': 'Irish',
    'gl': 'Galician',
    'gn': 'Guarani',
    'gu': 'Gujarati',
    'ha': 'Hausa',
    'he': 'Hebrew',
    'hi': 'Hindi',
    'hr': 'Croatian',
    'hu': 'Hungarian',
    'hy': 'Armenian',
    'id': 'Indonesian',
    'ig': 'Igbo',
    'is': 'Icelandic',
    'it': 'Italian',
    'ja': 'Japanese',
    'ka': 'Georgian',
    'kk': 'Kazakh',
    'km': 'Khmer',
    'kn': 'Kannada',
    'ko': 'Korean',
    'ky': 'Kyrgyz',
    'lb': 'Luxembourgish',
    'lo': 'Lao',
    'lt': 'Lithuanian',
    'lv': 'Latvian',
    'mg': 'Malagasy',
    'mi': 'Maori',
    'mk': 'Macedonian',
    'ml': 'Malayalam',
    'mn': 'Mongolian',
    'mr': 'Marathi',
    'ms': 'Malay',
    'mt': 'Maltese',
    'my': 'Burmese',
    'ne': 'Nepali',
    'nl': 'Dutch',
    'no': 'Norwegian',
    'om': 'Oromo',
    'or': 'Odia',
    'pa': 'Punjabi',
    'pl': 'Polish',
    'pt': 'Portuguese',
    'qu': 'Quechua',
    'rn': 'Kirundi',
    'ro': 'Romanian',
    'ru': 'Russian',
    'rw': 'Kinyarwanda',
    'si': 'Sinhala',
    'sk': 'Slovak',
    'sl': 'Slovenian',
    'so': 'Somali',
    'sq': 'Albanian',
    'sr': 'Serbian',
    'ss': 'Swati',
    'st': 'Southern Sotho',
    'sv': 'Swedish',
    'sw': 'Swahili',
    'ta': 'Tamil',
    'te': 'Telugu',
    'tg': 'Tajik',
    'th': 'Thai',
    'tk': 'Turkmen',
    'tn': 'Tswana',
    'tr': 'Turkish',
    'ts': 'Tsonga',
    'uk': 'Ukrainian',
    'ur': 'Urdu',
    'uz': 'Uzbek',
    've': 'Venda',
    'vi': 'Vietnamese',
    'xh': 'Xhosa',
    'yo': 'Yoruba',
    'zh': 'Chinese',
    'zu': 'Zulu',
}

# BCP 47 language-region codes (common variants)
BCP_47_VARIANTS = {
    'en-US': 'English (United States)',
    'en-GB': 'English (United Kingdom)',
    'en-AU': 'English (Australia)',
    'en-CA': 'English (Canada)',

    'zh-CN': 'Chinese (Simplified, China)',
    'zh-TW': 'Chinese (Traditional, Taiwan)',
    'zh-HK': 'Chinese (Traditional, Hong Kong)',

    'es-ES': 'Spanish (Spain)',
    'es-MX': 'Spanish (Mexico)',
    'es-419': 'Spanish (Latin America)',

    'pt-BR': 'Portuguese (Brazil)',
    'pt-PT': 'Portuguese (Portugal)',

    'fr-FR': 'French (France)',
    'fr-CA': 'French (Canada)',

    'de-DE': 'German (Germany)',
    'de-CH': 'German (Switzerland)',

    'it-IT': 'Italian (Italy)',
    'nl-NL': 'Dutch (Netherlands)',
    'pl-PL': 'Polish (Poland)',
    'ru-RU': 'Russian (Russia)',
    'ja-JP': 'Japanese (Japan)',
    'ko-KR': 'Korean (South Korea)',
    'sv-SE': 'Swedish (Sweden)',
    'da-DK': 'Danish (Denmark)',
    'fi-FI': 'Finnish (Finland)',
    'nb-NO': 'Norwegian Bokmal (Norway)',
    'tr-TR': 'Turkish (Turkey)',
    'cs-CZ': 'Czech (Czechia)',
    'el-GR': 'Greek (Greece)',
    'hu-HU': 'Hungarian (Hungary)',
    'ro-RO': 'Romanian (Romania)',
    'uk-UA': 'Ukrainian (Ukraine)',
    'id-ID': 'Indonesian (Indonesia)',
    'vi-VN': 'Vietnamese (Vietnam)',
    'ar-SA': 'Arabic (Saudi Arabia)',
}

# Combined mapping
ALL_LANGUAGE_CODES = {**ISO_639_1, **BCP_47_VARIANTS}

# Target codes understood by DeepL, keyed by document locale
DEEPL_TARGET_CODES = {
    'ar-SA': 'AR',
    'bg': 'BG',
    'cs-CZ': 'CS',
    'da-DK': 'DA',
    'de-DE': 'DE',
    'de-CH': 'DE',
    'el-GR': 'EL',
    'en-GB': 'EN-GB',
    'en-US': 'EN-US',
    'es-ES': 'ES',
    'es-MX': 'ES',
    'es-419': 'ES',
    'et': 'ET',
    'fi-FI': 'FI',
    'fr-FR': 'FR',
    'fr-CA': 'FR',
    'hu-HU': 'HU',
    'id-ID': 'ID',
    'it-IT': 'IT',
    'ja-JP': 'JA',
    'ko-KR': 'KO',
    'lt': 'LT',
    'lv': 'LV',
    'nb-NO': 'NB',
    'nl-NL': 'NL',
    'pl-PL': 'PL',
    'pt-BR': 'PT-BR',
    'pt-PT': 'PT-PT',
    'ro-RO': 'RO',
    'ru-RU': 'RU',
    'sk': 'SK',
    'sl': 'SL',
    'sv-SE': 'SV',
    'tr-TR': 'TR',
    'uk-UA': 'UK',
    'zh-CN': 'ZH',
    'zh-TW': 'ZH-HANT',
}

# Base languages for which DeepL honours the formality parameter
FORMALITY_LANGUAGES = {'de', 'fr', 'it', 'es', 'nl', 'pl', 'pt', 'ru', 'ja', 'vi'}

LOCALE_PATTERN = re.compile(r'\b([a-z]{2}-[a-z]{2})\b', re.IGNORECASE)
# A header cell that is nothing but a locale code (de, zh-Hans, fil-PH)
LOCALE_CELL_PATTERN = re.compile(r'^[a-z]{2,3}(?:[-_][a-z0-9]{2,8})*$', re.IGNORECASE)


def is_valid_language_code(code: str) -> bool:
    """
    Check if a language code is valid.

    Examples:
        >>> is_valid_language_code('zh-CN')
        True
        >>> is_valid_language_code('invalid')
        False
    """
    return normalize_locale(code) in ALL_LANGUAGE_CODES


def normalize_locale(code: str) -> str:
    """
    Normalize a locale code to language-lower, region-upper form.

    Args:
        code: Locale code in any case, '-' or '_' separated

    Returns:
        Normalized code

    Examples:
        >>> normalize_locale('fr-fr')
        'fr-FR'
        >>> normalize_locale('PT_br')
        'pt-BR'
        >>> normalize_locale('EN')
        'en'
    """
    code = (code or '').strip().replace('_', '-')
    if not code:
        return code
    parts = code.split('-')
    normalized = [parts[0].lower()]
    for part in parts[1:]:
        # Region subtags are 2 letters or 3 digits; leave script subtags title-cased
        normalized.append(part.upper() if len(part) in (2, 3) else part.title())
    return '-'.join(normalized)


def get_language_name(code: str) -> Optional[str]:
    """
    Get the full language name from code.

    Examples:
        >>> get_language_name('en')
        'English'
        >>> get_language_name('zh-cn')
        'Chinese (Simplified, China)'
    """
    code = normalize_locale(code)
    return ALL_LANGUAGE_CODES.get(code) or ISO_639_1.get(extract_base_language(code))


def extract_base_language(code: str) -> str:
    """
    Extract base language from code (remove region).

    Examples:
        >>> extract_base_language('zh-CN')
        'zh'
        >>> extract_base_language('fr')
        'fr'
    """
    return normalize_locale(code).split('-')[0]


def languages_match(code1: str, code2: str, strict: bool = False) -> bool:
    """
    Check if two language codes match.

    Args:
        code1: First language code
        code2: Second language code
        strict: If True, must match exactly. If False, base language match is ok.

    Examples:
        >>> languages_match('en', 'en-US')
        True
        >>> languages_match('en-GB', 'en-US', strict=True)
        False
    """
    if strict:
        return normalize_locale(code1) == normalize_locale(code2)

    return extract_base_language(code1) == extract_base_language(code2)


def find_locale_codes(text: str) -> List[str]:
    """
    Find every xx-XX locale code inside free text such as a spreadsheet header.

    Examples:
        >>> find_locale_codes('Translation fr-fr (reviewed)')
        ['fr-FR']
    """
    if not text:
        return []
    return [normalize_locale(match) for match in LOCALE_PATTERN.findall(str(text))]


def header_locale_codes(cell) -> List[str]:
    """
    Locale codes a spreadsheet header cell names: embedded xx-XX codes, or
    the whole cell when it is a bare code such as 'de' or 'zh-Hans'.

    Examples:
        >>> header_locale_codes('Translation fr-fr (reviewed)')
        ['fr-FR']
        >>> header_locale_codes(' zh-hans ')
        ['zh-Hans']
    """
    if not isinstance(cell, str):
        return []
    codes = find_locale_codes(cell)
    bare = cell.strip()
    if LOCALE_CELL_PATTERN.match(bare):
        code = normalize_locale(bare)
        if code not in codes:
            codes.append(code)
    return codes


def to_deepl_code(code: str) -> Optional[str]:
    """
    Map a document locale to the DeepL target code.

    Falls back to the upper-cased base language when the exact locale is not
    listed, which is what DeepL accepts for most languages.

    Examples:
        >>> to_deepl_code('fr-FR')
        'FR'
        >>> to_deepl_code('pt-br')
        'PT-BR'
    """
    code = normalize_locale(code)
    if code in DEEPL_TARGET_CODES:
        return DEEPL_TARGET_CODES[code]
    base = extract_base_language(code)
    if not base:
        return None
    return base.upper()


def supports_formality(code: str) -> bool:
    """Whether the provider formality option is meaningful for this language."""
    return extract_base_language(code) in FORMALITY_LANGUAGES


def extract_language_from_filename(filename: str) -> Optional[str]:
    """
    Extract the language code from a review table filename.

    Accepted shapes: 'fr-FR.csv', 'ClientReview_fr-FR_course.csv',
    'exports/de-DE.csv'.

    Examples:
        >>> extract_language_from_filename('fr-FR.csv')
        'fr-FR'
        >>> extract_language_from_filename('ClientReview_de-DE_module1.csv')
        'de-DE'
        >>> extract_language_from_filename('notes.txt')
    """
    name = Path(filename).name

    match = re.match(r'^([a-z]{2}-[A-Z]{2})\.(csv|tsv)$', name, re.IGNORECASE)
    if match:
        return normalize_locale(match.group(1))

    match = re.match(r'^ClientReview_([a-z]{2}-[A-Z]{2})_', name, re.IGNORECASE)
    if match:
        return normalize_locale(match.group(1))

    return None
