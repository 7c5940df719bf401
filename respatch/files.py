import logging
import shutil
from pathlib import Path
from typing import Dict, List, Union

from respatch.config import AppSection, PatchDescriptor
from respatch.errors import ReadFailure
from respatch.patcher import apply_offsets, find_patch_offsets

logger = logging.getLogger(__name__)

UNDO_SUFFIX = ".undo"


def is_installed(app: AppSection, game_dir: Union[str, Path]) -> bool:
    """Check whether a directory holds the application's checkfile.

    The file name is compared case-insensitively, missing or unreadable
    directories count as not installed.
    """
    game_path = Path(game_dir)
    if not game_path.is_dir():
        return False

    wanted = app.checkfile.lower()
    try:
        return any(
            entry.name.lower() == wanted and entry.is_file()
            for entry in game_path.iterdir()
        )
    except OSError as e:
        logger.warning("Failed to list %s: %s", game_path, e)
        return False


def undo_path_for(descriptor: PatchDescriptor) -> str:
    """Return the backup path of a descriptor, relative to the game directory"""
    if descriptor.undofile:
        return descriptor.undofile
    return descriptor.modfile + UNDO_SUFFIX


def read_file(path: Path) -> bytearray:
    try:
        with open(path, "rb") as f:
            return bytearray(f.read())
    except (IOError, OSError) as e:
        raise ReadFailure(path, e) from e


def write_file(path: Path, data) -> None:
    try:
        with open(path, "wb") as f:
            f.write(data)
    except (IOError, OSError) as e:
        raise ReadFailure(path, e) from e


def patch_app(
    app: AppSection, game_dir: Union[str, Path], width: int, height: int
) -> List[Path]:
    """Apply an application's whole patch chain to the files in game_dir.

    Every target file is read once and all patches are located and applied
    in memory first, so nothing is written when any pattern is missing.
    Before a target is overwritten its original contents are copied to the
    undo path of each patch touching it, unless that undo file already exists.

    Args:
        app: Application whose chain is applied
        game_dir: Directory containing the application's files
        width: Horizontal resolution to write
        height: Vertical resolution to write

    Returns:
        Paths of the modified files

    Raises:
        PatternNotFound: If a patch cannot be located
        BufferBoundsError: If a patch would write outside its file
        ReadFailure: If a file cannot be read or written
    """
    game_path = Path(game_dir)
    originals: Dict[str, bytes] = {}
    buffers: Dict[str, bytearray] = {}

    for index, descriptor in enumerate(app.patches):
        if descriptor.modfile not in buffers:
            data = read_file(game_path / descriptor.modfile)
            originals[descriptor.modfile] = bytes(data)
            buffers[descriptor.modfile] = data

        data = buffers[descriptor.modfile]
        offsets = find_patch_offsets(data, descriptor, index)
        apply_offsets(data, descriptor, offsets, width, height)
        logger.debug(
            "Patch %d of [%s] matched %s at %s",
            index,
            app.name,
            descriptor.modfile,
            ", ".join(f"{offset:#x}" for offset in offsets),
        )

    for descriptor in app.patches:
        undo_path = game_path / undo_path_for(descriptor)
        if undo_path.exists():
            continue
        write_file(undo_path, originals[descriptor.modfile])
        logger.info("Saved backup of %s to %s", descriptor.modfile, undo_path)

    written = []
    for modfile, data in buffers.items():
        target = game_path / modfile
        write_file(target, data)
        logger.info("Patched %s to %dx%d", target, width, height)
        written.append(target)

    return written


def has_backup(app: AppSection, game_dir: Union[str, Path]) -> bool:
    """Check whether any undo file of the application exists"""
    game_path = Path(game_dir)
    return any((game_path / undo_path_for(p)).exists() for p in app.patches)


def restore_app(app: AppSection, game_dir: Union[str, Path]) -> List[Path]:
    """Restore each target file of an application from its first undo file.

    Returns:
        Paths of the restored files, targets without a backup are skipped

    Raises:
        ReadFailure: If a backup cannot be copied back
    """
    game_path = Path(game_dir)
    restored = []

    for modfile in app.modfiles:
        candidates = [
            game_path / undo_path_for(p) for p in app.patches if p.modfile == modfile
        ]
        backup = next((path for path in candidates if path.exists()), None)
        target = game_path / modfile
        if backup is None:
            logger.warning("No backup found for %s", target)
            continue

        try:
            shutil.copyfile(backup, target)
        except (IOError, OSError, shutil.Error) as e:
            raise ReadFailure(target, e) from e
        logger.info("Restored %s from %s", target, backup)
        restored.append(target)

    return restored
