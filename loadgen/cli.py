"""Командная строка генератора нагрузки"""

import argparse
import logging
import sys
from typing import List

from .errors import ConfigError
from .object_queue import QueuePolicy
from .runner import Launcher, RunConfig, resolve_data_cap
from .worker import BACKENDS
from .workloads import (
    OutputFormat,
    WorkloadConfig,
    parse_distribution,
    parse_operations,
)

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='loadgen',
        description='Storage load generator: read/write/delete objects as quickly as possible',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 8 workers writing and reading 1 MB objects over WebDAV
  loadgen -t localhost:8080 -c 8 -d 1m

  # S3 (minio), 3:1 read/write mix, stop after 10 GB written
  loadgen -P s3 -t localhost:9000 -w r:3,w -m 10g

  # Fill a local filesystem to 80%, tabular output for gnuplot
  loadgen -P fs -t /mnt/test -w w -m 80% -f tabular
        """
    )

    parser.add_argument('-t', '--target', required=True,
                        help='target server (host[:port] or URL) or directory')
    parser.add_argument('-P', '--protocol', choices=sorted(BACKENDS),
                        default=WorkloadConfig.PROTOCOL,
                        help=f'storage protocol, default: {WorkloadConfig.PROTOCOL}')
    parser.add_argument('-c', '--concurrency', type=int,
                        default=WorkloadConfig.CONCURRENCY,
                        help=f'number of concurrent workers, default: {WorkloadConfig.CONCURRENCY}')
    parser.add_argument('-s', '--sleep', type=int, default=WorkloadConfig.SLEEP_MS,
                        help=f'pause in millis between operations, default: {WorkloadConfig.SLEEP_MS}')
    parser.add_argument('-d', '--distribution', default=WorkloadConfig.DISTRIBUTION,
                        metavar='SIZE:COUNT,...',
                        help=f'object size distribution, default: {WorkloadConfig.DISTRIBUTION}')
    parser.add_argument('-w', '--workload', default=WorkloadConfig.WORKLOAD,
                        metavar='OP:COUNT,...',
                        help=f'operation mix over r, w, d, default: {WorkloadConfig.WORKLOAD}')
    parser.add_argument('-i', '--interval', type=float,
                        default=WorkloadConfig.INTERVAL_SEC,
                        help=f'stats interval in seconds, default: {WorkloadConfig.INTERVAL_SEC}')
    parser.add_argument('-q', '--queue-mode', choices=[p.value for p in QueuePolicy],
                        default=WorkloadConfig.QUEUE_MODE,
                        help=f'object selection policy, default: {WorkloadConfig.QUEUE_MODE}')
    parser.add_argument('--queue-cap', type=int, default=WorkloadConfig.QUEUE_CAPACITY,
                        help=f'max tracked objects, 0 = unbounded, '
                             f'default: {WorkloadConfig.QUEUE_CAPACITY}')
    parser.add_argument('-f', '--format', choices=[f.value for f in OutputFormat],
                        default=OutputFormat.HUMAN.value,
                        help='stats output format, default: human')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='per-worker stats and error messages (human-verbose)')
    parser.add_argument('-m', '--max-data', default=WorkloadConfig.DATA_CAP,
                        help='stop after writing this much (e.g. 10g), or fill '
                             'a filesystem target to N%%, default: 0 (unbounded)')
    parser.add_argument('-r', '--read-list', default=None,
                        help='file with object keys to read, one per line')
    parser.add_argument('-D', '--debug', action='store_true',
                        help='debug logging and per-operation state tracing')
    parser.add_argument('--sync', action='store_true',
                        help='fsync each file (fs protocol)')
    parser.add_argument('--bucket', default=WorkloadConfig.NAMESPACE,
                        help=f'S3 bucket / WebDAV collection, default: {WorkloadConfig.NAMESPACE}')
    parser.add_argument('-o', '--output-dir', default=None,
                        help='save raw data, report and plots here on exit')

    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    """Перевод аргументов в RunConfig, все ошибки - ConfigError"""
    output_format = OutputFormat(args.format)
    if args.verbose and output_format is OutputFormat.HUMAN:
        output_format = OutputFormat.HUMAN_VERBOSE

    return RunConfig(
        target=args.target,
        protocol=args.protocol,
        concurrency=args.concurrency,
        pause_ms=args.sleep,
        distribution=parse_distribution(args.distribution),
        operations=parse_operations(args.workload),
        interval=args.interval,
        output_format=output_format,
        data_cap=resolve_data_cap(args.max_data, args.protocol, args.target),
        queue_policy=QueuePolicy(args.queue_mode),
        queue_capacity=args.queue_cap,
        read_list=args.read_list,
        debug=args.debug,
        sync=args.sync,
        namespace=args.bucket,
        output_dir=args.output_dir,
    )


def main(argv: List[str] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    try:
        config = build_config(args)
        launcher = Launcher(config)
        logger.debug(f"Configuration: {config}")
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    return launcher.run()


if __name__ == '__main__':
    sys.exit(main())
