import nox

nox.needs_version = ">=2024.4.15"
nox.options.default_venv_backend = "uv|virtualenv"


@nox.session
@nox.parametrize("editable", [True, False])
def install(session: nox.Session, editable: bool) -> None:
    session.install("-e." if editable else ".")

    # The public names must be importable from the top-level package.
    out = session.run(
        "python",
        "-c",
        "import formdata; print(formdata.__version__, formdata.FormDataCodec, formdata.parse_form_data)",
        silent=True,
    )
    assert "FormDataCodec" in out

    # The package must work without any of the test dependencies installed.
    out = session.run(
        "python",
        "-c",
        "import io, formdata; b, f = formdata.parse_form_data(io.BytesIO(b'')); print(b, len(f))",
        silent=True,
    )
    assert "None 0" in out


@nox.session
def tests(session: nox.Session) -> None:
    session.install("-e.[test]")
    session.run("pytest", "--timeout=30", "tests", *session.posargs)
