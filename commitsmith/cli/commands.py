"""CLI Commands"""

import os
import sys
import time

from commitsmith.config import Config, ENV_PREFIX, ConfigManager, get_config_path, load_config, save_config
from commitsmith.llm import LLMError, OllamaClient, get_client
from commitsmith.output import bold, dim, info, print_error, print_success

ENV_OVERRIDES = ("PROVIDER", "MODEL", "DEBUG", "TIMEOUT", "LOG_FILE")


def display_config() -> int:
    """Display current configuration."""
    config = load_config()
    config_path = get_config_path()
    filename = ConfigManager.CONFIG_FILENAME

    print(f"\n{bold('Current Configuration')}\n")

    if config_path:
        print(f"  {dim('Loaded from:')} {config_path}")
    else:
        print(f"  {dim('Loaded from:')} defaults (no {filename} found)")

    overrides = [(f"{ENV_PREFIX}{name}", os.environ.get(f"{ENV_PREFIX}{name}")) for name in ENV_OVERRIDES]
    overrides = [(key, value) for key, value in overrides if value]
    if overrides:
        print(f"  {dim('Environment overrides:')}")
        for key, value in overrides:
            print(f"    {key}={value}")

    print()
    print(f"  {bold('Settings:')}")
    for key in Config.__dataclass_fields__:
        value = getattr(config, key)
        if value is None:
            shown = 'auto'
        elif isinstance(value, bool):
            shown = str(value).lower()
        else:
            shown = str(value)
        print(f"    {key + ':':<20}{info(shown)}")

    print(f"\n  {dim('Config locations:')}")
    print(f"    Local:  {filename} (in current directory)")
    print(f"    Global: ~/{filename}")
    print(f"\n  {dim('Run')} commitsmith --init-config {dim('to write the defaults')}\n")

    return 0


def run_init_config() -> int:
    """Write the current effective configuration to ~/.commitsmithrc."""
    path = save_config(load_config(), global_config=True)
    print_success(f"Saved to {path}")
    return 0


def run_install_completion() -> int:
    """Install shell tab completion."""
    shell = os.environ.get('SHELL', '')
    line = 'eval "$(register-python-argcomplete commitsmith)"'
    powershell = "register-python-argcomplete --shell powershell commitsmith | Out-String | Invoke-Expression"

    print(f"\n{bold('Tab Completion Setup')}\n")

    if 'zsh' in shell or 'bash' in shell:
        rc_file = '~/.zshrc' if 'zsh' in shell else '~/.bashrc'
        print(f"Add this line to {dim(os.path.expanduser(rc_file))}:\n")
        print(f"  {line}\n")
        print(f"Then run: {dim('source ' + rc_file)}")
    elif sys.platform == 'win32':
        print("For PowerShell, add this to your $PROFILE:\n")
        print(f"  {powershell}")
    else:
        print("Run one of these based on your shell:\n")
        print(f"  {dim('# Bash/Zsh')}")
        print(f"  {line}\n")
        print(f"  {dim('# PowerShell')}")
        print(f"  {powershell}\n")
        print(f"  {dim('# Fish')}")
        print("  register-python-argcomplete --shell fish commitsmith | source")

    print(f"\n{dim('After setup, press TAB to autocomplete flags.')}")
    return 0


def run_warmup(provider: str | None, model: str | None) -> int:
    """Pre-load Ollama model into memory."""
    if provider and provider not in ('auto', 'ollama'):
        print_error("--warmup only works with Ollama (local models)")
        return 1

    try:
        client = get_client(provider='ollama', model=model)
    except LLMError as e:
        print_error(f"Failed to connect to Ollama: {e}")
        return 1

    if not isinstance(client, OllamaClient):
        print_error("--warmup only works with Ollama")
        return 1

    if client.is_model_loaded():
        print_success(f"Model {bold(client.model)} is already loaded")
        return 0

    print(f"Loading {bold(client.model)}... ", end='', flush=True)
    start = time.time()
    client.warmup()
    elapsed = time.time() - start

    if client.is_model_loaded():
        print_success(f"ready! ({elapsed:.1f}s)")
        print(dim("Model will stay loaded for ~10 minutes"))
        return 0
    print_error("failed to load model")
    return 1
