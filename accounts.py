"""
Account loader module - loads the supply account registry from a text file.
"""

from pathlib import Path

import lumens
from lumens.supply import PROGRAMS, AccountRegistry
from lumens.utils import validate_account_id

DEFAULT_ACCOUNTS_FILE = Path(lumens.__file__).parent / "lumens_accounts.txt"

SINGLE_GROUPS = ("void", "upgrade_reserve")
LIST_GROUPS = ("escrow",) + PROGRAMS


def load_accounts(file_path: str | Path) -> dict[str, list[tuple[str, str]]]:
    """
    Load grouped accounts from a text file.

    File format:
        # Comment line
        group.label = AccountId

    Args:
        file_path: Path to the accounts file

    Returns:
        Dict of {group: [(label, account_id), ...]} in file order

    Raises:
        ValueError: If a group is unknown or an account ID is invalid
    """
    groups: dict[str, list[tuple[str, str]]] = {}
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Accounts file not found: {path}")

    with open(path, "r") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                raise ValueError(f"Expected 'group.label = account' at line {line_num}: {line}")
            name, account_id = line.split("=", 1)
            name = name.strip()
            account_id = account_id.strip()
            group, _, label = name.partition(".")

            if group not in SINGLE_GROUPS + LIST_GROUPS:
                raise ValueError(f"Unknown account group at line {line_num}: {group}")
            if not validate_account_id(account_id):
                raise ValueError(f"Invalid account ID at line {line_num}: {name} = {account_id}")

            groups.setdefault(group, []).append((label or group, account_id))

    return groups


def load_registry(file_path: str | Path = DEFAULT_ACCOUNTS_FILE) -> AccountRegistry:
    """Build the AccountRegistry from an accounts file."""
    groups = load_accounts(file_path)

    singles = {}
    for group in SINGLE_GROUPS:
        entries = groups.get(group, [])
        if len(entries) != 1:
            raise ValueError(f"Expected exactly one '{group}' account, found {len(entries)}")
        singles[group] = entries[0][1]

    return AccountRegistry(
        programs={
            program: tuple(account_id for _, account_id in groups.get(program, []))
            for program in PROGRAMS
        },
        void_account=singles["void"],
        upgrade_reserve_account=singles["upgrade_reserve"],
        escrow=tuple(account_id for _, account_id in groups.get("escrow", [])),
    )
