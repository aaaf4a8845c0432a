from bs4 import BeautifulSoup


def clean_text(value):
    """Strip HTML tags and surrounding whitespace from user-supplied text."""
    if value is None:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text()
    return text.strip()
