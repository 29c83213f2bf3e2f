import inspect


class CommandRegistrationError(Exception):
    """Exception raised when attempting to register a duplicate subcommand."""


# Registry that stores all subcommands made available to the CLI dispatcher.
_COMMAND_SPECS = {}


def _argument_kwargs(parameter, types):
    kwargs = {}
    default = parameter.default
    if default is inspect.Parameter.empty:
        return kwargs
    if isinstance(default, bool):
        kwargs["action"] = "store_false" if default else "store_true"
        return kwargs
    kwargs["default"] = default
    if isinstance(default, (list, tuple)):
        kwargs["nargs"] = "*"
        kwargs["default"] = list(default)
    elif parameter.name in types:
        kwargs["type"] = types[parameter.name]
    elif default is not None:
        kwargs["type"] = type(default)
    return kwargs


def register_command(
    help_text, description=None, help=None, types=None, name=None
):
    """Register a command handler for the CLI dispatcher.

    Parameters without a default become positional arguments, the others
    become ``--options``. Boolean defaults turn into flags and list defaults
    become positional arguments accepting any number of values. ``types``
    gives the type of options whose default is ``None``. The command is
    named after the function unless ``name`` is given.
    """

    def decorator(func):
        command = name or func.__name__.replace("_", "-")
        if command in _COMMAND_SPECS:
            raise CommandRegistrationError(
                f"Command '{command}' already registered"
            )
        _COMMAND_SPECS[command] = {
            "handler": func,
            "help": help_text.strip(),
            "description": (
                description if description is not None else help_text
            ).strip(),
            "arguments": [],
        }
        signature = inspect.signature(func)
        argument_help = help if help is not None else {}
        argument_types = types if types is not None else {}
        for parameter in signature.parameters.values():
            if parameter.kind in [
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            ]:
                continue
            if parameter.default is inspect.Parameter.empty or isinstance(
                parameter.default, (list, tuple)
            ):
                flags = [parameter.name]
            else:
                flags = ["--" + parameter.name.replace("_", "-")]
            kwargs = _argument_kwargs(parameter, argument_types)
            if parameter.name in argument_help:
                kwargs["help"] = argument_help[parameter.name].strip()
            _COMMAND_SPECS[command]["arguments"].append(
                {"flags": flags, "kwargs": kwargs, "dest": parameter.name}
            )
        return func

    return decorator


def command_specs():
    return _COMMAND_SPECS
