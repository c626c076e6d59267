from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

import cv2

from handshare.core.capture import VideoSource
from handshare.core.channel import WebSocketChannel
from handshare.core.errors import AcquisitionError
from handshare.core.pose import YoloHandEstimator
from handshare.core.session import SessionContext, build_session
from handshare.core.surface import Surface
from handshare.models.config import AppConfig
from handshare.services.config_store import ConfigStore

logger = logging.getLogger("handshare.client")

WINDOW_NAME = "handshare"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Share a live hand skeleton overlay with peers.")
    parser.add_argument("--config", default=None, help="YAML config path (default: $HANDSHARE_CONFIG).")
    parser.add_argument("--server", default=None, help="Relay WebSocket URL (overrides config).")
    parser.add_argument("--camera", type=int, default=None, help="Camera index (overrides config).")
    parser.add_argument("--no-window", action="store_true", help="Run without a preview window.")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    return parser.parse_args(argv)


def _window_callback(session_ref: list[SessionContext]):
    def _show(surface: Surface) -> None:
        cv2.imshow(WINDOW_NAME, surface.image)
        key = cv2.waitKey(1) & 0xFF
        if key in (ord("q"), 27) and session_ref:
            session_ref[0].scheduler.stop()

    return _show


async def run_client(cfg: AppConfig, show_window: bool = True) -> None:
    client_cfg = cfg.client
    video: Optional[VideoSource] = VideoSource(
        client_cfg.camera_index, client_cfg.video_width, client_cfg.video_height
    )
    acquisition_message = None
    try:
        video.open()
    except AcquisitionError as exc:
        acquisition_message = str(exc)
        logger.warning("[Client] %s; showing peers only", exc)
        video = None

    estimator = YoloHandEstimator(cfg.model)
    session_ref: list[SessionContext] = []
    session = build_session(
        client_cfg,
        estimator,
        lambda identity: WebSocketChannel(
            client_cfg.server_url,
            identity,
            token=cfg.server.token,
            max_pending=client_cfg.max_pending,
            open_timeout_s=client_cfg.open_timeout_s,
            max_message_size=cfg.relay.max_message_size,
        ),
        width=video.width if video else None,
        height=video.height if video else None,
        on_frame=_window_callback(session_ref) if show_window else None,
    )
    session_ref.append(session)
    session.scheduler.acquisition_message = acquisition_message
    logger.info("[Client] session identity %s", session.identity)

    try:
        await session.channel.connect()
        await session.scheduler.run(video)
    finally:
        await session.channel.close()
        if video is not None:
            video.release()
        if show_window:
            cv2.destroyAllWindows()
        logger.info("[Client] stopped: %s", session.status())


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = ConfigStore(args.config).config
    overrides = {}
    if args.server:
        overrides["server_url"] = args.server
    if args.camera is not None:
        overrides["camera_index"] = args.camera
    if overrides:
        cfg = cfg.model_copy(update={"client": cfg.client.model_copy(update=overrides)})
    show_window = cfg.client.show_window and not args.no_window
    try:
        asyncio.run(run_client(cfg, show_window=show_window))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
