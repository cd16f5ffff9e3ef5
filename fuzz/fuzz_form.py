import io
import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from formdata.exceptions import FormDataError
    from formdata.formdata import Field, FormDataCodec, parse_form_data


def parse_random_body(fdp: EnhancedDataProvider) -> None:
    parse_form_data(io.BytesIO(fdp.ConsumeRandomBytes()), "latin-1")


def parse_multipart_form_data(fdp: EnhancedDataProvider) -> None:
    boundary = fdp.ConsumeBoundary()
    body = (
        f"{boundary}\r\n"
        'Content-Disposition: form-data; name="field"\r\n\r\n'
        f"{fdp.ConsumeRandomString()}\r\n"
        f"{boundary}--\r\n"
    )
    parse_form_data(io.BytesIO(body.encode("utf-8", errors="ignore")), "utf-8")


def round_trip_file(fdp: EnhancedDataProvider) -> None:
    boundary = fdp.ConsumeBoundary()
    data = fdp.ConsumeRandomBytes()
    codec = FormDataCodec(boundary)
    body = codec.serialize({"file": Field.from_file("file", "file.bin", data)})

    fields = codec.parse(io.BytesIO(body))
    # The payload may contain the boundary itself, in which case the body is
    # legitimately cut short.
    if (b"\r\n" + boundary.encode("utf-8")) not in data:
        assert fields["file"].data == data


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    targets = [parse_random_body, parse_multipart_form_data, round_trip_file]
    target = fdp.PickValueInList(targets)

    try:
        target(fdp)
    except FormDataError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
