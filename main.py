"""
Zabbix Graph Downloader
Command line tool that saves every graph of a Zabbix host, rendered over a
time window, as PNG images.

Usage: zabbix-graph-downloader <hostname> <start_date> <duration>
"""

import os
import sys
import shutil
import logging
import argparse
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Set

from chart_downloader import ChartDownloader, sanitize_filename
from config import Settings, load_settings
from errors import ExitCode, GraphDownloaderError, StageError, UsageError
from zabbix_client import ZabbixClient

logger = logging.getLogger(__name__)

PROG = 'zabbix-graph-downloader'

USAGE = f"""
Usage: {PROG} <hostname> <start_date> <duration>

Downloads Zabbix monitoring graphs for a given host.

Arguments:
    hostname    - Hostname (e.g., ec2-preprod)
    start_date  - Start date in the format YYYY-MM-DD HH:MM:SS
    duration    - Duration in seconds, or an end date

Required environment variables:
    ZABBIX_URL      - Zabbix API URL (e.g., https://zabbix.example.com/api_jsonrpc.php)
    ZABBIX_TOKEN    - Zabbix API token
    ZABBIX_USER     - Zabbix username (web login)
    ZABBIX_PASSWORD - Zabbix password (web login)

Optional environment variables:
    ZABBIX_IMAGES_DIR   - Output root (default: ~/Images)
    ZABBIX_GRAPH_WIDTH  - Image width in pixels (default: 1200)
    ZABBIX_GRAPH_HEIGHT - Image height in pixels (default: 600)
    ZABBIX_LOG_LEVEL    - DEBUG, INFO, WARNING or ERROR (default: INFO)

Example:
    export ZABBIX_URL=https://zabbix.example.com/api_jsonrpc.php
    export ZABBIX_TOKEN=token
    export ZABBIX_USER=USERNAME
    export ZABBIX_PASSWORD=PASSWORD
    {PROG} ec2-preprod '2025-01-31 15:36:00' 3600
"""


@dataclass(frozen=True)
class DownloadJob:
    """Everything a run needs once the host has been resolved."""
    hostname: str
    host_id: str
    time_from: str
    time_to: str
    dest_dir: str


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


class ColorFormatter(logging.Formatter):
    """Color WARNING records yellow and ERROR and above red."""

    COLOR_RESET = '\033[0m'
    COLORS = {
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[31m',
    }

    def format(self, record):
        msg = super().format(record)
        color = self.COLORS.get(record.levelno)
        if color:
            return f"{color}{msg}{self.COLOR_RESET}"
        return msg


def usage() -> None:
    print(USAGE)


def setup_logging(level: str = 'INFO') -> None:
    """Send log records to stderr unless the root logger is already configured."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColorFormatter(
        '[%(asctime)s][%(name)s] %(levelname)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    ))
    logging.basicConfig(level=level, handlers=[handler])


def parse_args(argv: List[str]) -> argparse.Namespace:
    """
    Parse hostname, start date and duration.

    -h/--help anywhere wins over every other argument.

    Raises:
        UsageError: On unknown options or if there are not exactly 3 arguments
    """
    if '-h' in argv or '--help' in argv:
        return argparse.Namespace(help=True)

    parser = _ArgumentParser(prog=PROG, add_help=False)
    parser.add_argument('arguments', nargs='*')
    args = parser.parse_args(argv)
    args.help = False

    if len(args.arguments) != 3:
        raise UsageError("Expected 3 arguments: hostname, start_date, and duration")

    args.hostname, args.time_from, args.time_to = args.arguments
    return args


def output_dir_for(images_dir: str, hostname: str, time_from: str, time_to: str) -> str:
    """<images_dir>/<hostname>_<from>_<to>, spaces replaced by underscores."""
    name = f"{hostname}_{time_from.replace(' ', '_')}_{time_to.replace(' ', '_')}"
    return os.path.join(images_dir, name)


def prepare_output_dir(dest_dir: str) -> str:
    """Destroy any previous run's directory and create it empty."""
    try:
        if os.path.isdir(dest_dir):
            shutil.rmtree(dest_dir)
        os.makedirs(dest_dir)
    except OSError as e:
        raise StageError(f"Cannot prepare output directory {dest_dir}: {str(e)}",
                         ExitCode.OUTPUT_DIR) from e
    logger.info(f"Output directory: {dest_dir}")
    return dest_dir


def download_all(downloader: ChartDownloader, job: DownloadJob,
                 graphs: Dict[str, str], settings: Settings) -> int:
    """
    Download every graph, one after another. A failed graph does not stop
    the others. Two graphs whose titles map to the same file name keep
    separate files: the later one gets its graph id appended.

    Returns:
        Number of graphs saved
    """
    logger.info(f"Downloading {len(graphs)} graphs of {job.hostname} (host ID {job.host_id})")
    used_names: Set[str] = set()
    success_count = 0
    for graph_id, name in graphs.items():
        logger.info(f"\tGraph ID: {graph_id} -> Name: {name}")
        title = sanitize_filename(name)
        if title in used_names:
            unique_title = f"{title} ({graph_id})"
            logger.warning(f"File name {title}.png already used, saving graph {graph_id} "
                           f"as {unique_title}.png")
            title = unique_title
        used_names.add(title)

        if downloader.download_graph(graph_id, title, job.time_from, job.time_to,
                                     job.dest_dir, settings.width, settings.height):
            success_count += 1
    return success_count


def run(args: argparse.Namespace, settings: Settings,
        client: Optional[ZabbixClient] = None,
        downloader: Optional[ChartDownloader] = None) -> int:
    """Resolve the host, list its graphs and download them."""
    client = client or ZabbixClient(settings.base_url, settings.token)
    downloader = downloader or ChartDownloader(settings.base_url, settings.user, settings.password)

    client.connect()
    try:
        logger.info("STEP 1: Get host ID")
        try:
            host_id = client.resolve_host(args.hostname)
        except GraphDownloaderError as e:
            raise StageError(f"Failed to get host ID: {str(e)}", ExitCode.HOST_RESOLUTION) from e

        logger.info("STEP 2: Get graph list")
        try:
            graphs = client.list_graphs(host_id)
        except GraphDownloaderError as e:
            raise StageError(f"Failed to get graph list: {str(e)}", ExitCode.GRAPH_LISTING) from e
    finally:
        client.disconnect()

    if not graphs:
        logger.warning(f"No graph retrieved for host {args.hostname}, nothing to download")
        return ExitCode.OK

    dest_dir = output_dir_for(settings.images_dir, args.hostname, args.time_from, args.time_to)
    job = DownloadJob(
        hostname=args.hostname,
        host_id=host_id,
        time_from=args.time_from,
        time_to=args.time_to,
        dest_dir=prepare_output_dir(dest_dir),
    )

    logger.info("STEP 3: Download graphs")
    success_count = download_all(downloader, job, graphs, settings)
    logger.info(f"Downloaded {success_count}/{len(graphs)} graphs into {job.dest_dir}")
    return ExitCode.OK


def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """Application entry point."""
    if argv is None:
        argv = sys.argv[1:]
    if environ is None:
        environ = os.environ

    setup_logging()

    try:
        args = parse_args(argv)
        if args.help:
            usage()
            return ExitCode.OK

        settings = load_settings(environ)
        logging.getLogger().setLevel(settings.log_level)
        return run(args, settings)

    except GraphDownloaderError as e:
        logger.error(str(e))
        usage()
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
