from dictaphone.transport.session import CommandResult, Transport

from .parse_command import Command


class RunCommand:
    """Use case for applying a parsed Command to the transport."""

    def __init__(self, transport: Transport):
        self.transport = transport

    def execute(self, command: Command) -> CommandResult | dict:
        if command.operation == "status":
            return self.transport.status()
        if command.operation == "quit":
            # stops any recorder or player before the process exits
            return self.transport.reset()
        return self.transport.dispatch(command.operation, *command.args)
