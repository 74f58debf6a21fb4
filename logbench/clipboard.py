"""
Best-effort system clipboard.

Tries pbcopy, xclip and xsel in that order and falls back to a temp file.
Nothing raised here may reach the interactive session.
"""

import logging
import os
import shutil
import subprocess
import tempfile

logger = logging.getLogger(__name__)

COMMANDS = [
    ['pbcopy'],
    ['xclip', '-selection', 'clipboard'],
    ['xsel', '--clipboard', '--input'],
]

FALLBACK_FILE = os.path.join(tempfile.gettempdir(), 'logbench_copy.txt')


def _pick_command():
    for cmd in COMMANDS:
        if shutil.which(cmd[0]):
            return cmd
    return None


def copy(text: str) -> bool:
    # True when the text reached a clipboard command or the fallback file.
    try:
        cmd = _pick_command()
        if cmd is None:
            with open(FALLBACK_FILE, 'w', encoding='utf-8') as fh:
                fh.write(text)
            return True
        subprocess.run(cmd, input=text.encode('utf-8'), check=True,
                       stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                       timeout=5)
        return True
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug('clipboard copy failed: %s', exc)
        return False
