from agent_core.browser.watchdogs.crash_watchdog import CrashWatchdog

__all__ = ['CrashWatchdog']
