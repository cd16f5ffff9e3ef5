import atheris


class EnhancedDataProvider(atheris.FuzzedDataProvider):
    def ConsumeRandomBytes(self) -> bytes:
        return self.ConsumeBytes(self.ConsumeIntInRange(0, self.remaining_bytes()))

    def ConsumeRandomString(self) -> str:
        return self.ConsumeUnicodeNoSurrogates(self.ConsumeIntInRange(0, self.remaining_bytes()))

    def ConsumeBoundary(self) -> str:
        # Boundaries are printable ASCII without line breaks.
        length = self.ConsumeIntInRange(1, 70)
        return "".join(chr(self.ConsumeIntInRange(0x21, 0x7E)) for _ in range(length))
