import numpy as np
import pytest
from movesync.pipeline.errors import InputDataError
from movesync.pipeline.io_utils import (
    parse_csv,
    sanitize_cols,
    find_time_column,
    find_axis_columns,
    extract_axis_data,
    load_imu_stream,
)


def test_parse_csv_trims_and_skips_blank_lines():
    csv = (
        "  Time , Acc_X ,Acc_Y, Acc_Z \n"
        "\n"
        " 0 , 0.1 , 0.2 , 9.7 \n"
        "   \n"
        "10,0.1,0.2,9.7\n"
    )
    df = parse_csv(csv)
    assert list(df.columns) == ["Time", "Acc_X", "Acc_Y", "Acc_Z"]
    assert len(df) == 2
    assert np.allclose(extract_axis_data(df, "acc"), [[0.1, 0.2, 9.7]] * 2)


def test_parse_csv_empty_raises():
    with pytest.raises(InputDataError):
        parse_csv("  \n\n ")


def test_sanitize_cols():
    assert sanitize_cols(["Acc X (g)", "gyro-y", "__MagZ__"]) == ["acc_x_g", "gyro_y", "magz"]


def test_find_time_column_defaults_to_first():
    assert find_time_column(["idx", "TimeStamp", "ax"]) == "TimeStamp"
    assert find_time_column(["idx", "ax"]) == "idx"
    assert find_time_column([]) is None


def test_axis_candidates_first_match_wins():
    headers = ["t", "AX", "accel_x", "Accel-Y", "az", "GyroX", "gy", "Gyroscope Z", "mag.x", "MY", "magz"]
    assert find_axis_columns(headers, "acc") == {"x": "accel_x", "y": "Accel-Y", "z": "az"}
    assert find_axis_columns(headers, "gyro") == {"x": "GyroX", "y": "gy", "z": "Gyroscope Z"}
    assert find_axis_columns(headers, "mag") == {"x": "mag.x", "y": "MY", "z": "magz"}


def test_missing_axes_named():
    df = parse_csv("time,ax,ay,az\n0,1,2,3\n")
    with pytest.raises(InputDataError, match="mag"):
        extract_axis_data(df, "mag")


def test_text_cells_read_as_zero():
    df = parse_csv("time,ax,ay,az\n0,1,oops,3\n1,,2,3\n")
    acc = extract_axis_data(df, "acc")
    np.testing.assert_allclose(acc, [[1, 0, 3], [0, 2, 3]])


def test_load_imu_stream_normalizes_time(imu_csv):
    stream = load_imu_stream(imu_csv(n=150))
    t = stream.times()
    assert stream.time_col == "time"
    assert t[0] == 0.0
    assert stream.timebase.scale == pytest.approx(1e-3)
    assert stream.sample_rate_hz == pytest.approx(100.0)
    assert len(stream) == 150


def test_load_imu_stream_header_only():
    with pytest.raises(InputDataError):
        load_imu_stream("time,ax,ay,az\n")
