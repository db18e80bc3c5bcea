"""URL builders for the sole-proprietorship registry endpoints."""
from urllib.parse import quote

BASE_URL = "https://pretrazivac-obrta.gov.hr"

CAPTCHA_PATH = "/captcha/image.png"
SEARCH_FORM_PATH = "/pretraga.htm"
LISTING_PATH = "/pretraga.htm?izvrsiDohvat"


def get_detail_path(registry_id: str) -> str:
    """Get the detail page path for a registry id."""
    return f"/detalji.htm?id={quote(str(registry_id), safe='')}"
