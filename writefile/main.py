import argparse
import sys

from writefile.actions.write_actions import write_file_to_disk
from writefile.config import load_request
from writefile.logging import LoggerFactory, default_log_dir, setup_logging
from writefile.storage.exceptions import WriteFileError

BANNER = "WriteFile - Write file to disk\n------------------------"


def main(argv=None):
    parser = argparse.ArgumentParser(description="Write a file to a block device")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Enable trace output (very verbose)")
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug, trace=args.trace, log_dir=default_log_dir())
    log = LoggerFactory.for_system()

    print(BANNER)

    try:
        request = load_request()
        result = write_file_to_disk(request)
    except WriteFileError as error:
        log.critical(str(error))
        return 1

    log.success(
        f"Successfully wrote file [{request.destination}] to device [{request.block_device}]"
    )
    if result.created_directories:
        log.debug(f"Created directories: {', '.join(result.created_directories)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
