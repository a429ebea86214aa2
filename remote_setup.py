#!/usr/bin/env python3

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from lib.arg_parser import create_provision_argument_parser
from lib.config import ProvisionConfig, host_variables, load_variables, resolve_variables
from lib.errors import ProvisionError
from lib.setup_common import print_step_list, run_playbook


def main() -> int:
    parser = create_provision_argument_parser(
        description="Apply the basic server playbook on this host",
        for_remote=True,
    )
    args = parser.parse_args()

    config = ProvisionConfig.from_args(args)
    config.local = True

    if config.list_steps:
        print_step_list()
        return 0

    # Without --vars the variables come from this host's environment
    try:
        if args.vars_file:
            variables = load_variables(args.vars_file)
        else:
            variables = resolve_variables(declarations=host_variables())
    except ProvisionError as e:
        print(f"Error: {e}")
        return 1

    return run_playbook(config, variables)


if __name__ == "__main__":
    sys.exit(main())
