from typing import Literal

from pydantic import BaseModel

Theme = Literal["light", "dark"]


class Preferences(BaseModel):
    theme: Theme = "light"
    ads_enabled: bool = True


class ThemePalette(BaseModel):
    primary: str
    background: str
    surface: str
    text: str
    border: str
    card: str


LIGHT_PALETTE = ThemePalette(
    primary="#6200EE",
    background="#FFFFFF",
    surface="#F5F5F5",
    text="#000000",
    border="#E0E0E0",
    card="#FFFFFF",
)

DARK_PALETTE = ThemePalette(
    primary="#BB86FC",
    background="#121212",
    surface="#1E1E1E",
    text="#FFFFFF",
    border="#333333",
    card="#1E1E1E",
)


def palette_for(theme: Theme) -> ThemePalette:
    return DARK_PALETTE if theme == "dark" else LIGHT_PALETTE


class PreferencesView(Preferences):
    palette: ThemePalette
    persist_error: str | None = None


class ThemeUpdate(BaseModel):
    theme: Theme


class AdsUpdate(BaseModel):
    ads_enabled: bool
