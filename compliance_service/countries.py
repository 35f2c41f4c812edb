"""Country code/name normalization and the CA/CS professional titles per country."""

from typing import NamedTuple, Optional

COUNTRY_NAMES = {
    "US": "United States",
    "IN": "India",
    "GB": "United Kingdom",
    "UK": "United Kingdom",
    "CA": "Canada",
    "AU": "Australia",
    "DE": "Germany",
    "FR": "France",
    "SG": "Singapore",
    "JP": "Japan",
    "CN": "China",
    "BR": "Brazil",
    "MX": "Mexico",
    "ZA": "South Africa",
    "NG": "Nigeria",
    "KE": "Kenya",
    "EG": "Egypt",
    "AE": "UAE",
    "SA": "Saudi Arabia",
    "IL": "Israel",
    "AT": "Austria",
    "HK": "Hong Kong",
    "NL": "Netherlands",
    "FI": "Finland",
    "GR": "Greece",
    "VN": "Vietnam",
    "MM": "Myanmar",
    "AZ": "Azerbaijan",
    "RS": "Serbia",
    "MC": "Monaco",
    "PK": "Pakistan",
    "PH": "Philippines",
    "JO": "Jordan",
    "GE": "Georgia",
    "BY": "Belarus",
    "AM": "Armenia",
    "BT": "Bhutan",
    "LK": "Sri Lanka",
    "RU": "Russia",
    "IT": "Italy",
    "ES": "Spain",
    "PT": "Portugal",
    "BE": "Belgium",
    "CH": "Switzerland",
    "SE": "Sweden",
    "NO": "Norway",
    "DK": "Denmark",
    "IE": "Ireland",
    "NZ": "New Zealand",
    "KR": "South Korea",
    "TH": "Thailand",
    "MY": "Malaysia",
    "ID": "Indonesia",
    "BD": "Bangladesh",
    "NP": "Nepal",
}

# "UK" is an alias; the name resolves to the ISO code.
_CODE_BY_NAME = {
    name.lower(): code for code, name in COUNTRY_NAMES.items() if code != "UK"
}
_ALIASES = {"UK": "GB"}


class ProfessionalTitles(NamedTuple):
    ca_title: str
    cs_title: str


_ACCOUNTANT_SECRETARY = ProfessionalTitles("Chartered Accountant", "Company Secretary")
_CPA_CORPORATE = ProfessionalTitles("CPA", "Corporate Secretary")
_CPA_COMPANY = ProfessionalTitles("CPA", "Company Secretary")
_TAX_ADVISOR = ProfessionalTitles("Tax Advisor", "Management")
_EXPERT_COMPTABLE = ProfessionalTitles("Expert-Comptable", "Secrétaire Général")

PROFESSIONAL_TITLES = {
    "AT": _TAX_ADVISOR,
    "IN": _ACCOUNTANT_SECRETARY,
    "US": _CPA_CORPORATE,
    "GB": _ACCOUNTANT_SECRETARY,
    "DE": _TAX_ADVISOR,
    "SG": _ACCOUNTANT_SECRETARY,
    "HK": _CPA_COMPANY,
    "NL": _TAX_ADVISOR,
    "FI": _TAX_ADVISOR,
    "GR": _TAX_ADVISOR,
    "BR": _CPA_CORPORATE,
    "VN": _CPA_CORPORATE,
    "MM": _CPA_CORPORATE,
    "AZ": _TAX_ADVISOR,
    "RS": _TAX_ADVISOR,
    "MC": _TAX_ADVISOR,
    "PK": _ACCOUNTANT_SECRETARY,
    "PH": _CPA_CORPORATE,
    "NG": _ACCOUNTANT_SECRETARY,
    "JO": _TAX_ADVISOR,
    "IL": _CPA_CORPORATE,
    "GE": _TAX_ADVISOR,
    "BY": _TAX_ADVISOR,
    "AM": _TAX_ADVISOR,
    "BT": _ACCOUNTANT_SECRETARY,
    "LK": _ACCOUNTANT_SECRETARY,
    "RU": _TAX_ADVISOR,
    "CA": _CPA_CORPORATE,
    "AU": _CPA_COMPANY,
    "FR": _EXPERT_COMPTABLE,
    "JP": _CPA_CORPORATE,
    "CN": _CPA_CORPORATE,
    "MX": _CPA_CORPORATE,
    "ZA": _ACCOUNTANT_SECRETARY,
    "KE": _CPA_CORPORATE,
    "EG": _CPA_CORPORATE,
    "AE": _CPA_CORPORATE,
    "SA": _CPA_CORPORATE,
    "IT": ProfessionalTitles("Dottore Commercialista", "Segretario Generale"),
    "ES": ProfessionalTitles("CPA", "Secretario General"),
    "PT": ProfessionalTitles("CPA", "Secretário Geral"),
    "BE": _EXPERT_COMPTABLE,
    "CH": _EXPERT_COMPTABLE,
    "SE": _CPA_CORPORATE,
    "NO": _CPA_CORPORATE,
    "DK": _CPA_CORPORATE,
    "IE": _CPA_CORPORATE,
    "NZ": _CPA_COMPANY,
    "KR": _CPA_CORPORATE,
    "TH": _CPA_CORPORATE,
    "MY": _CPA_COMPANY,
    "ID": _CPA_CORPORATE,
    "BD": _ACCOUNTANT_SECRETARY,
    "NP": _ACCOUNTANT_SECRETARY,
}

DEFAULT_TITLES = ProfessionalTitles("CA", "CS")


def lookup_country_code(value: Optional[str]) -> Optional[str]:
    """Return the ISO code for a known country name or code, else None."""
    if not value:
        return None
    candidate = value.strip()
    code = _CODE_BY_NAME.get(candidate.lower())
    if code:
        return code
    upper = candidate.upper()
    if len(upper) == 2 and upper in COUNTRY_NAMES:
        return _ALIASES.get(upper, upper)
    return None


def to_country_code(value: Optional[str]) -> str:
    """Convert a country name or code to a code; unknown values come back stripped."""
    if not value:
        return ""
    return lookup_country_code(value) or value.strip()


def country_display_name(value: Optional[str]) -> str:
    if not value:
        return "Unknown"
    if value in COUNTRY_NAMES.values():
        return value
    return COUNTRY_NAMES.get(value.upper(), value)


def professional_titles(country_code: Optional[str]) -> ProfessionalTitles:
    if not country_code:
        return DEFAULT_TITLES
    code = country_code.strip().upper()
    return PROFESSIONAL_TITLES.get(_ALIASES.get(code, code), DEFAULT_TITLES)

