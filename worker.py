"""
Submission worker entry point — used by the `worker` process in Procfile.

Runs a pass immediately, then every SUBMISSION_INTERVAL_SECONDS. Immediate
deliveries enqueued by the submit endpoint are handled by a separate
`rq worker submissions` process.
"""
import signal

from leadrouter.logging_config import configure_logging
from leadrouter.pipeline.worker import create_worker


def main():
    configure_logging()
    worker = create_worker()

    def shutdown(signum, frame):
        worker.stop()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    try:
        worker.run_forever()
    finally:
        worker.close()


if __name__ == '__main__':
    main()
