"""Server lifecycle commands."""


def register_server_command(subparsers):
    """Register the 'server' command with its action subparsers."""
    from rackboot.commands.server.create import register_create_action

    server_parser = subparsers.add_parser("server", help="Manage Rackspace cloud servers")
    action_subparsers = server_parser.add_subparsers(dest="action", required=True)

    register_create_action(action_subparsers)
