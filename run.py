import argparse
import sys

from soilcarbon import ee_utils
from soilcarbon.cli import main


def project_from_argv(argv):
    """--project as given on the command line, before the full CLI parses it."""
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--project")
    known, _ = pre.parse_known_args(argv)
    return known.project


def start(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    project = project_from_argv(argv)

    print("Checking system...")
    if ee_utils.check_auth(project):
        print("Earth Engine credentials found.")
    else:
        print("Earth Engine credentials not found.")
        print("Starting authentication...")
        try:
            ee_utils.initialize_ee(project)
        except Exception as e:
            print(f"Authentication failed: {e}")
            sys.exit(1)
        print("Authentication successful.")
    print("Starting exports...")
    sys.exit(main(argv))


if __name__ == "__main__":
    start()
