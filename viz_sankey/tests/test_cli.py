"""
CLI integration tests.
"""

import pytest
import sys
import tempfile
import subprocess
import json
from pathlib import Path

import pandas as pd

from .synthetic_data import generate_rows_csv


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def run_cli(*args):
    cmd = [sys.executable, '-m', 'viz_sankey', *args]
    return subprocess.run(cmd, capture_output=True, text=True, cwd=PROJECT_ROOT)


class TestCLI:
    """Test CLI functionality."""

    def test_cli_generates_outputs(self):
        """Test CLI with generated rows."""
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)

            data_path = generate_rows_csv(str(tmpdir / "rows.csv"), num_rows=20, seed=1)

            result = run_cli(
                '--data', data_path,
                '--levels', 'L0,L1,L2',
                '--measure', 'value',
                '--color-by', 'L2',
                '--width', '900',
                '--height', '400',
                '--out-html', str(tmpdir / 'sankey.html'),
                '--snapshot', str(tmpdir / 'snapshot.json')
            )

            # Check execution succeeded
            assert result.returncode == 0, f"CLI failed: {result.stderr}"
            assert 'Summary Statistics' in result.stdout

            # Check output files exist
            assert (tmpdir / 'sankey.html').exists()
            assert (tmpdir / 'snapshot.json').exists()

            with open(tmpdir / 'sankey.html', 'r') as f:
                html_content = f.read()
                assert 'plotly' in html_content.lower()

            with open(tmpdir / 'snapshot.json', 'r') as f:
                snapshot = json.load(f)

            assert snapshot['params']['levels'] == ['L0', 'L1', 'L2']
            assert snapshot['params']['color_by'] == 'L2'
            assert snapshot['summary']['num_bars'] == 3
            assert snapshot['summary']['num_flows'] == 40

            total = pd.read_csv(data_path)['value'].sum()
            assert abs(snapshot['summary']['total_value'] - total) < 1e-6

    def test_cli_negative_values(self):
        """Negative measures abort with a non-zero exit code."""
        with tempfile.TemporaryDirectory() as tmpdir:
            data_path = f"{tmpdir}/rows.csv"
            pd.DataFrame({
                'Region': ['A', 'B'],
                'Type': ['X', 'Y'],
                'Sales': [10, -20]
            }).to_csv(data_path, index=False)

            result = run_cli(
                '--data', data_path,
                '--levels', 'Region,Type',
                '--measure', 'Sales',
                '--out-html', f"{tmpdir}/sankey.html",
                '--snapshot', f"{tmpdir}/snapshot.json"
            )

            assert result.returncode == 1
            assert 'negative' in result.stderr.lower()
            assert not Path(f"{tmpdir}/sankey.html").exists()

    def test_cli_error_handling(self):
        """Test CLI error handling for bad arguments."""
        # Missing required arguments
        result = run_cli('--levels', 'L0')
        assert result.returncode != 0
        assert 'required' in result.stderr.lower()

        with tempfile.TemporaryDirectory() as tmpdir:
            data_path = generate_rows_csv(f"{tmpdir}/rows.csv")

            # Unknown column
            result = run_cli('--data', data_path, '--levels', 'L0,nope', '--measure', 'value')
            assert result.returncode != 0
            assert 'missing required columns' in result.stderr.lower()

            # Unsupported format
            txt_path = Path(tmpdir) / 'rows.txt'
            txt_path.write_text('L0,value\nA,1\n')
            result = run_cli('--data', str(txt_path), '--levels', 'L0', '--measure', 'value')
            assert result.returncode != 0
            assert 'unsupported file format' in result.stderr.lower()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
