import logging
import socket
import sys
import threading
import time
import webbrowser

import requests
import uvicorn

import config
from db.database import Database
from errors import NoteError
from processing.transcriber import LiveTranscriber
from recorder.audio_capture import AudioRecorder
from recorder.session import SessionCoordinator
from server.app import create_app
from tray.tray_icon import TrayIcon

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("idsnote")


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No se encontro un puerto disponible entre {start} y {end}")


def request_capabilities(recorder: AudioRecorder, transcriber: LiveTranscriber) -> dict[str, bool]:
    granted = {
        "microphone": recorder.has_permission(),
        "speech": transcriber.initialize(),
    }
    for name, ok in granted.items():
        if ok:
            logger.info("Capacidad '%s' disponible", name)
        else:
            logger.warning("Capacidad '%s' no disponible", name)
    return granted


def main():
    # Ensure data directories exist
    config.RECORDINGS_DIR.mkdir(parents=True, exist_ok=True)

    try:
        port = find_available_port(config.PORT, config.PORT + 20)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Puerto %d en uso, usando %d", config.PORT, port)
    config.PORT = port

    # Initialize components
    db = Database(config.DB_PATH)
    recorder = AudioRecorder(device_index=config.MIC_DEVICE_INDEX)
    transcriber = LiveTranscriber(
        model_size=config.WHISPER_MODEL,
        language=config.WHISPER_LANGUAGE,
        partial_interval=config.PARTIAL_INTERVAL_SECS,
    )
    recorder.subscribe(transcriber.feed)
    coordinator = SessionCoordinator(
        db, recorder, transcriber,
        recordings_dir=config.RECORDINGS_DIR,
        audio_format=config.AUDIO_FORMAT,
    )

    # Whisper tarda en cargar; se prueba en background
    threading.Thread(
        target=request_capabilities, args=(recorder, transcriber), daemon=True,
    ).start()

    app = create_app(db, coordinator, transcriber)

    def toggle_session():
        base = f"http://{config.HOST}:{config.PORT}/api"
        if coordinator.is_listening():
            requests.post(f"{base}/session/stop", timeout=60)
        else:
            resp = requests.post(f"{base}/session/start", timeout=60)
            if resp.status_code != 200:
                logger.warning("No se inicio la grabacion: %s", resp.text)
        tray.update_state(coordinator.is_listening())

    server_should_stop = threading.Event()

    def quit_app():
        logger.info("Cerrando IDS Note...")
        if coordinator.is_listening():
            try:
                coordinator.stop_session()
            except NoteError as e:
                logger.error("No se pudo guardar la sesion en curso: %s", e)
        recorder.terminate()
        db.close()
        server_should_stop.set()

    tray = TrayIcon(on_toggle_session=toggle_session, on_quit=quit_app)

    def update_tray_state():
        while not server_should_stop.is_set():
            listening = coordinator.is_listening()
            live_text = coordinator.live_text if listening else ""
            if tray.is_listening != listening or tray.live_text != live_text:
                tray.update_state(listening, live_text)
            time.sleep(1)

    threading.Thread(target=update_tray_state, daemon=True).start()

    server_config = uvicorn.Config(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="warning",
    )
    server = uvicorn.Server(server_config)
    server_thread = threading.Thread(target=server.run, daemon=True)
    server_thread.start()

    url = f"http://{config.HOST}:{config.PORT}"
    logger.info("IDS Note iniciado en %s", url)
    webbrowser.open(url)

    # El icono de bandeja bloquea el hilo principal hasta salir
    try:
        tray.run()
    except KeyboardInterrupt:
        pass
    finally:
        if not server_should_stop.is_set():
            quit_app()
        server.should_exit = True


if __name__ == "__main__":
    main()
