"""ANSI colors and status markers used by :mod:`kubestrap.util.logger`."""

RESET = '\033[0m'


def _wrap(code, string):
    return '\033[%sm%s%s' % (code, string, RESET)


def red(string):
    return _wrap('91', string)


def green(string):
    return _wrap('92', string)


def yellow(string):
    return _wrap('93', string)


def grey(string):
    return _wrap('90', string)


def good(string):
    return '%s %s' % (_wrap('1;32', '[+]'), string)


def bad(string):
    return '%s %s' % (_wrap('1;31', '[-]'), string)


def info(string):
    return '%s %s' % (_wrap('1;33', '[!]'), string)


def run(string):
    return '%s %s' % (_wrap('1;97', '[~]'), string)
