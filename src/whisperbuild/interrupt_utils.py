"""Ctrl-C handling for long running child processes.

git clones and cmake builds can run for minutes. When the user interrupts
one of them, the interrupt has to reach the main thread even if it was
caught somewhere below it.
"""

import _thread


def handle_keyboard_interrupt_properly(ke: KeyboardInterrupt) -> None:
    """Forward a KeyboardInterrupt to the main thread and re-raise it.

    Usage:
        try:
            subprocess.run(cmd)
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)

    Args:
        ke: The interrupt that was caught

    Raises:
        KeyboardInterrupt: Always
    """
    _thread.interrupt_main()
    raise ke
