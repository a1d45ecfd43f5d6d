"""ロギング設定。"""

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

_GLYPHS = {
    logging.DEBUG: "·",
    logging.INFO: "ℹ",
    logging.WARNING: "⚠",
    logging.ERROR: "✗",
    logging.CRITICAL: "✗",
}

_PALETTE_KEYS = {
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


class ConsoleFormatter(logging.Formatter):
    """オペレーター向けにレベルを記号と色で表示するフォーマッター。"""

    def __init__(self, palette: dict[str, str]) -> None:
        super().__init__("%(message)s")
        self._palette = palette

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        glyph = _GLYPHS.get(record.levelno, "ℹ")
        color = self._palette.get(_PALETTE_KEYS.get(record.levelno, ""), "")
        reset = self._palette.get("reset", "")
        return f"{color}{glyph}{reset} {message}"


def configure_logging(level: str = "INFO", palette: dict[str, str] | None = None) -> None:
    """ルートロガーにstderrハンドラを1つだけ設定する。

    paletteを渡すとオペレーター向けの表示、省略するとタイムスタンプ付きの表示になる。
    不明なレベル名はINFOとして扱う。
    """
    log_level = getattr(logging, level.upper(), None)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ConsoleFormatter(palette) if palette is not None else logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(log_level)
