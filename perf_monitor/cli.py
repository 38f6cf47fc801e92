"""
Command line entry point: one-shot check, continuous monitoring,
status query and email test
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from . import __version__
from .alerts.alert_manager import AlertManager
from .alerts.email_sender import EmailSender
from .alerts.messages import build_test_message
from .app import start_status_server
from .config_loader import ConfigLoader
from .errors import ConfigError, NotifyError
from .logging_setup import setup_logging
from .monitors import DockerSampler, HostSampler
from .scheduler import MonitorEngine
from .status_report import render_status

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2

SHUTDOWN_GRACE_SECONDS = 10


def build_engine(config: ConfigLoader) -> MonitorEngine:
    """
    Wire samplers, alert manager and notifier from configuration

    Args:
        config: Validated ConfigLoader

    Returns:
        MonitorEngine
    """
    thresholds = config.thresholds()
    return MonitorEngine(
        thresholds=thresholds,
        host_sampler=HostSampler(disk_path=thresholds.disk_path, cpu_window=thresholds.cpu_sample_window),
        container_sampler=DockerSampler(),
        alert_manager=AlertManager(thresholds),
        notifier=EmailSender(config, retry_budget=thresholds.check_interval),
    )


def run_once(config: ConfigLoader, engine: Optional[MonitorEngine] = None) -> int:
    """Single monitoring check with alerting"""
    engine = engine or build_engine(config)
    result = engine.run_cycle()

    if result.alert_triggered:
        print("⚠️  High CPU usage detected! Check your email for alerts.")
    else:
        print("✅ All systems normal.")

    failed = False
    for error in result.sampler_errors:
        print(f"❌ Sampler failed: {error}")
        failed = True
    for error in result.notification_errors:
        print(f"❌ Failed to send alert email: {error}")
        failed = True
    return EXIT_FAILURE if failed else EXIT_OK


def run_status(config: ConfigLoader, engine: Optional[MonitorEngine] = None) -> int:
    """Print the status report; alert state is not touched"""
    engine = engine or build_engine(config)
    snapshot = engine.collect_snapshot()
    print(render_status(snapshot, engine.thresholds.status_top_n))

    if snapshot.host_error or snapshot.container_error:
        for error in (snapshot.host_error, snapshot.container_error):
            if error:
                print(f"❌ Unreachable: {error}")
        return EXIT_FAILURE
    return EXIT_OK


def run_test_email(config: ConfigLoader, notifier: Optional[EmailSender] = None) -> int:
    """Send the synthetic test message, bypassing alert state"""
    notifier = notifier or EmailSender(config)
    logger.info("Testing email configuration...")

    if not notifier.enabled:
        print("❌ Email notifications are disabled in the configuration.")
        return EXIT_FAILURE

    try:
        notifier.notify(build_test_message())
    except NotifyError as e:
        print(f"❌ Failed to send test email: {e}")
        return EXIT_FAILURE

    print("✅ Test email sent successfully!")
    return EXIT_OK


def run_continuous(config: ConfigLoader, engine: Optional[MonitorEngine] = None,
                   stop_event: Optional[threading.Event] = None,
                   install_signals: bool = True) -> int:
    """
    Monitor until SIGINT/SIGTERM (or stop_event) and drain the running cycle

    Args:
        config: Validated ConfigLoader
        engine: Engine to run; built from config when omitted
        stop_event: Cancellation token; a new one when omitted
        install_signals: Route SIGINT/SIGTERM to the stop event

    Returns:
        Exit code
    """
    engine = engine or build_engine(config)
    stop_event = stop_event or threading.Event()

    if install_signals:
        def request_stop(signum, frame):
            logger.info("Received signal %d, shutting down", signum)
            stop_event.set()

        signal.signal(signal.SIGINT, request_stop)
        signal.signal(signal.SIGTERM, request_stop)

    if config.get('http.enabled', False):
        start_status_server(engine, config.get('http.host'), config.get('http.port'))

    worker = threading.Thread(target=engine.run_forever, args=(stop_event,),
                              name='monitor-loop', daemon=True)
    worker.start()

    # Short waits keep the main thread responsive to signals
    while worker.is_alive() and not stop_event.wait(0.5):
        pass

    worker.join(SHUTDOWN_GRACE_SECONDS)
    if worker.is_alive():
        logger.warning("Monitoring cycle still running after %ds, exiting anyway", SHUTDOWN_GRACE_SECONDS)
    return EXIT_OK


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='performance-monitor',
        description='Docker & Server Performance Monitor',
    )
    parser.add_argument('-c', '--config', default='config.json', metavar='FILE',
                        help='Configuration file path (default: config.json)')
    parser.add_argument('-i', '--interval', type=int, metavar='SECONDS',
                        help='Override monitoring.check_interval')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('-r', '--continuous', action='store_true', help='Run continuous monitoring')
    mode.add_argument('-s', '--status', action='store_true', help='Show current system status')
    mode.add_argument('-t', '--test-email', action='store_true', help='Test email configuration')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = ConfigLoader(args.config)
        config.load()
        if args.interval is not None:
            config.override('monitoring.check_interval', args.interval)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(config)
    logger.info("Configuration loaded from %s (%s)", args.config, config.describe())

    if args.test_email:
        return run_test_email(config)
    if args.status:
        return run_status(config)
    if args.continuous:
        return run_continuous(config)
    return run_once(config)
