import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from formdata.formdata import parse_content_disposition, parse_options_header


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    value = fdp.ConsumeRandomString()
    try:
        parse_options_header(value)
        parse_content_disposition("Content-Disposition: form-data; " + value)
    except AssertionError:
        return
    except TypeError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
