import argparse
import logging

import httpx

from terminbot.config import load_settings
from terminbot.seen_store import SeenStore
from terminbot.telegram_notifier import TelegramNotifier
from terminbot.worker import (
    _send_status_message,
    run_check_once,
    run_forever,
    run_invalidation_once,
    send_test_message,
)


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="TerminBot: driving test slot watcher")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run single check and exit")
    mode.add_argument("--invalidate", action="store_true", help="Drop past slots from the seen-set and exit")
    mode.add_argument(
        "--test-message",
        action="store_true",
        help="Send a message with all currently listed slots, without touching the seen-set",
    )
    args = parser.parse_args()

    _setup_logging()
    settings = load_settings()

    store = SeenStore(settings.db_path)
    store.init_db()

    with httpx.Client(timeout=settings.http_timeout_seconds, follow_redirects=True) as http_client:
        notifier = TelegramNotifier(
            bot_token=settings.telegram_bot_token,
            client=http_client,
            retry_attempts=settings.telegram_retry_attempts,
        )

        if args.invalidate:
            run_invalidation_once(settings, store=store)
            return 0

        if args.test_message:
            send_test_message(settings, http_client=http_client, notifier=notifier)
            return 0

        # Уведомление о старте (best-effort)
        try:
            _send_status_message(
                settings,
                notifier,
                text=(
                    "TerminBot zagnan.\n"
                    f"Način: {'once' if args.once else 'forever'}\n"
                    f"interval={settings.check_interval_seconds}s"
                ),
            )
        except Exception:
            logging.getLogger(__name__).warning("Failed to send Telegram startup message", exc_info=True)

        try:
            if args.once:
                run_check_once(settings, store=store, http_client=http_client, notifier=notifier)
                return 0

            run_forever(settings, store=store, http_client=http_client, notifier=notifier)
            return 0

        except Exception as e:
            # Уведомление о краше (best-effort)
            try:
                _send_status_message(
                    settings,
                    notifier,
                    text=(
                        "TerminBot se je ustavil z napako.\n"
                        f"Razlog: {type(e).__name__}: {e}"
                    ),
                )
            except Exception:
                logging.getLogger(__name__).warning("Failed to send Telegram crash message", exc_info=True)
            raise

        finally:
            # Уведомление о выходе/остановке процесса (best-effort)
            try:
                _send_status_message(settings, notifier, text="TerminBot ustavljen (izhod iz procesa).")
            except Exception:
                logging.getLogger(__name__).warning("Failed to send Telegram shutdown message", exc_info=True)


if __name__ == "__main__":
    raise SystemExit(main())
