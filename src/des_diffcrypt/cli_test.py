import pytest
from click.testing import CliRunner
from fastapi.testclient import TestClient

from des_diffcrypt import cli as cli_module
from des_diffcrypt.cli import cli
from des_diffcrypt.config import PAIR_SEPARATOR
from des_diffcrypt.interchange import generate_pair_text


KEY = 0x133457799BBCDFF1


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(scope="module")
def pair_text():
    return generate_pair_text(KEY, 4000, seed=41)


class TestCipherCommands:
    """Test suite for keygen, encrypt and decrypt"""

    def test_keygen_seeded(self, runner):
        """Test that a seed gives a repeatable key"""
        first = runner.invoke(cli, ["keygen", "--seed", "5"])
        second = runner.invoke(cli, ["keygen", "--seed", "5"])
        assert first.exit_code == 0
        assert first.output == second.output
        assert first.output.startswith("0x")

    def test_encrypt_known_answer(self, runner):
        """Test textbook DES from the command line"""
        result = runner.invoke(cli, ["encrypt", "0x0123456789ABCDEF", "--key", "0x133457799BBCDFF1"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "0x85E813540F0AB405"

    def test_decrypt_known_answer(self, runner):
        """Test textbook DES decryption from the command line"""
        result = runner.invoke(cli, ["decrypt", "0x85E813540F0AB405", "-k", "1383827165325090801"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "0x0123456789ABCDEF"

    def test_core_round_trip(self, runner):
        """Test the bare 6-round core both ways"""
        encrypted = runner.invoke(cli, ["encrypt", "12345", "-k", "0x133457799BBCDFF1", "-r", "6", "--core"])
        ciphertext = encrypted.output.strip()
        decrypted = runner.invoke(cli, ["decrypt", ciphertext, "-k", "0x133457799BBCDFF1", "-r", "6", "--core"])
        assert int(decrypted.output.strip(), 16) == 12345

    def test_bad_key(self, runner):
        """Test that unparsable keys are usage errors"""
        result = runner.invoke(cli, ["encrypt", "1", "--key", "nope"])
        assert result.exit_code == 2
        assert "not a 64-bit decimal or 0x-hex value" in result.output

    def test_bad_rounds(self, runner):
        """Test that round counts outside 1..16 are rejected"""
        result = runner.invoke(cli, ["encrypt", "1", "--key", "1", "--rounds", "17"])
        assert result.exit_code == 2


class TestGenerate:
    """Test suite for writing pair files"""

    def test_generate_to_file(self, runner, tmp_path):
        """Test that the output file holds both sections"""
        path = tmp_path / "pairs.txt"
        result = runner.invoke(cli, ["generate", "-k", "0x133457799BBCDFF1", "-n", "2000", "--seed", "7", "-o", str(path)])
        assert result.exit_code == 0, result.output
        lines = path.read_text().splitlines()
        assert lines.count(PAIR_SEPARATOR) == 1
        assert path.read_text() == generate_pair_text(KEY, 2000, seed=7) + "\n"

    def test_generate_random_key_reported(self, runner, tmp_path):
        """Test that a generated key is reported on stderr"""
        path = tmp_path / "pairs.txt"
        result = runner.invoke(cli, ["generate", "-n", "100", "--seed", "8", "-o", str(path)])
        assert result.exit_code == 0
        assert "key: 0x" in result.output


class TestAnalyze:
    """Test suite for the attack command"""

    def test_recovers_key(self, runner, tmp_path, pair_text):
        """Test the attack on a generated file"""
        path = tmp_path / "pairs.txt"
        path.write_text(pair_text)
        result = runner.invoke(cli, ["analyze", str(path), "--no-ui"])
        assert result.exit_code == 0, result.output
        assert result.output.strip().splitlines()[-1] == "1383827165325090801"
        assert "Recovery Details" in result.output

    def test_threaded_from_env(self, runner, tmp_path, pair_text):
        """Test that options can come from the environment"""
        path = tmp_path / "pairs.txt"
        path.write_text(pair_text)
        result = runner.invoke(cli, ["analyze", str(path), "--no-ui"], env={"DES_DIFFCRYPT_ANALYZE_WORKERS": "3"})
        assert result.exit_code == 0, result.output
        assert result.output.strip().splitlines()[-1] == "1383827165325090801"

    def test_not_found(self, runner, tmp_path):
        """Test the failure marker and exit status"""
        path = tmp_path / "pairs.txt"
        path.write_text(PAIR_SEPARATOR + "\n")
        result = runner.invoke(cli, ["analyze", str(path), "--no-ui"])
        assert result.exit_code == 1
        assert result.output.strip().splitlines()[-1] == "NOT FOUND"

    def test_malformed_file(self, runner, tmp_path):
        """Test that parse errors name the line"""
        path = tmp_path / "pairs.txt"
        path.write_text("1;2;3;4\n1;2;3\n")
        result = runner.invoke(cli, ["analyze", str(path), "--no-ui"])
        assert result.exit_code == 1
        assert "line 2" in result.output


class TestDdt:
    """Test suite for printing difference distributions"""

    def test_prints_table(self, runner):
        """Test that the zero row shows all 64 pairs"""
        result = runner.invoke(cli, ["ddt", "1"])
        assert result.exit_code == 0
        assert "S1 difference distribution" in result.output
        assert "64" in result.output

    def test_lists_preimages(self, runner):
        """Test that --output lists the four inputs of one S-box output"""
        result = runner.invoke(cli, ["ddt", "1", "--output", "5"])
        assert result.exit_code == 0
        assert result.output.startswith("S1 output 5: ")
        assert "1b" in result.output.split()
        assert len(result.output.split()) == 4 + 3

    def test_bad_index(self, runner):
        """Test that S-box 9 is rejected"""
        assert runner.invoke(cli, ["ddt", "9"]).exit_code == 2


class TestDemo:
    """Test suite for attacking the demo API"""

    @pytest.fixture
    def api(self, monkeypatch):
        from demo_api.api import app, get_secret_key

        app.dependency_overrides[get_secret_key] = lambda: KEY
        client = TestClient(app)
        monkeypatch.setattr(cli_module.requests, "get", lambda url, params=None: client.get(url, params=params))
        monkeypatch.setattr(cli_module.requests, "post", lambda url, json=None: client.post(url, json=json))
        yield client
        app.dependency_overrides.clear()

    def test_demo_verifies_key(self, runner, api):
        """Test fetching pairs, recovering the key and verifying it"""
        result = runner.invoke(cli, ["demo", "-n", "4000", "--seed", "3", "--no-ui"])
        assert result.exit_code == 0, result.output
        assert result.output.strip().splitlines()[-1] == "verified"

    def test_demo_api_error(self, runner, api):
        """Test that an HTTP failure becomes a CLI error"""
        result = runner.invoke(cli, ["demo", "-n", "999999999", "--no-ui"])
        assert result.exit_code == 1
        assert "Failed to get" in result.output
