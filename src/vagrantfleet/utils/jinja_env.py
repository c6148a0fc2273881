"""
Jinja2 environments used by vagrantfleet.

Two environments are built here:

* a file system one for the user's ``fleet.yml``, which may read the
  process environment through a few helpers::

      vm_count: {{ env("FLEET_VM_COUNT", default="3") }}
      key_dir: {{ env_required("FLEET_KEY_DIR") }}
      verbose: {{ env_is_set("FLEET_DEBUG") }}

* a package one for the templates shipped in ``vagrantfleet/assets``
  (the Vagrantfile).
"""

import os
from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined


def env(var_name: str, default: str = "") -> str:
    """
    Return the value of the environment variable *var_name* or *default*.
    """
    return os.environ.get(var_name, default)


def env_required(var_name: str, message: str = None) -> str:
    """
    Return the value of the environment variable *var_name*.

    Raises ``ValueError`` if the variable is not set or is empty.
    """
    value = os.environ.get(var_name)
    if not value:
        msg = message or f"required environment variable '{var_name}' is not set"
        raise ValueError(msg)
    return value


def env_is_set(var_name: str) -> bool:
    """
    Return ``True`` if *var_name* is set to a non-empty value.
    """
    return bool(os.environ.get(var_name))


def create_jinja_env(search_path: str) -> Environment:
    """
    Create an environment for config files with the env helpers as globals.

    Args:
        search_path: Directory used as the template search path.

    Returns:
        A configured :class:`jinja2.Environment`.
    """
    jinja_env = Environment(loader=FileSystemLoader(search_path))
    jinja_env.globals["env"] = env
    jinja_env.globals["env_required"] = env_required
    jinja_env.globals["env_is_set"] = env_is_set
    return jinja_env


def ruby_str(value) -> str:
    """
    Quote *value* as a ruby double quoted string literal.
    """
    escaped = (
        str(value)
        .replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("#", "\\#")
    )
    return f'"{escaped}"'


def create_assets_env() -> Environment:
    """
    Create an environment that loads the templates bundled with the package.

    Undefined variables are errors so that a half rendered Vagrantfile is
    never written.  The ``ruby_str`` filter is available to the templates.
    """
    jinja_env = Environment(
        loader=PackageLoader("vagrantfleet", "assets"),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    jinja_env.filters["ruby_str"] = ruby_str
    return jinja_env
