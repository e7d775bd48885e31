import logging
import webbrowser

import pystray
from PIL import Image, ImageDraw

import config

logger = logging.getLogger(__name__)

ICON_SIZE = 64
TITLE = "IDS Note"
PREVIEW_CHARS = 60


def _create_mic_image(color: str) -> Image.Image:
    img = Image.new("RGBA", (ICON_SIZE, ICON_SIZE), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    # capsula, arco y pie del microfono
    draw.rounded_rectangle([22, 6, 42, 40], radius=10, fill=color)
    draw.arc([14, 18, 50, 48], start=0, end=180, fill=color, width=4)
    draw.line([32, 48, 32, 56], fill=color, width=4)
    draw.line([22, 57, 42, 57], fill=color, width=4)
    return img


def _icon_idle() -> Image.Image:
    return _create_mic_image("#18ffff")


def _icon_listening() -> Image.Image:
    return _create_mic_image("#ff1744")


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    """Last ``limit`` characters of a transcript, on one line."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return "..." + text[-(limit - 3):]


def status_title(is_listening: bool, live_text: str = "") -> str:
    if not is_listening:
        return TITLE
    if not live_text.strip():
        return f"{TITLE}: escuchando..."
    return f"{TITLE}: {preview(live_text)}"


class TrayIcon:
    """Tray menu that toggles a voice note and mirrors its live transcript."""

    def __init__(self, on_toggle_session, on_quit):
        self._on_toggle_session = on_toggle_session
        self._on_quit = on_quit
        self._is_listening = False
        self._live_text = ""
        self._icon: pystray.Icon | None = None

    @property
    def is_listening(self) -> bool:
        return self._is_listening

    @property
    def live_text(self) -> str:
        return self._live_text

    def _build_menu(self) -> pystray.Menu:
        items = []
        if self._is_listening:
            items.append(pystray.MenuItem(
                preview(self._live_text) or "Escuchando...", None, enabled=False,
            ))
            items.append(pystray.Menu.SEPARATOR)
            record_label = "Detener nota de voz"
        else:
            record_label = "Grabar nota de voz"

        items += [
            pystray.MenuItem(record_label, self._toggle_session, default=True),
            pystray.MenuItem(
                "Abrir notas",
                lambda: webbrowser.open(f"http://{config.HOST}:{config.PORT}"),
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Salir", self._quit),
        ]
        return pystray.Menu(*items)

    def _toggle_session(self):
        try:
            self._on_toggle_session()
        except Exception as e:
            logger.error("Error alternando la grabacion: %s", e)

    def _quit(self):
        try:
            self._on_quit()
        except Exception as e:
            logger.error("Error al salir: %s", e)
        self.stop()

    def update_state(self, is_listening: bool, live_text: str = ""):
        changed_state = is_listening != self._is_listening
        self._is_listening = is_listening
        self._live_text = live_text if is_listening else ""
        if self._icon:
            if changed_state:
                self._icon.icon = _icon_listening() if is_listening else _icon_idle()
            self._icon.title = status_title(is_listening, self._live_text)
            self._icon.menu = self._build_menu()

    def run(self):
        self._icon = pystray.Icon(
            "IDSNote",
            icon=_icon_idle(),
            title=TITLE,
            menu=self._build_menu(),
        )
        self._icon.run()

    def stop(self):
        if self._icon:
            self._icon.stop()
