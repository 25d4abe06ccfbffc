"""Tests for pose parsing and anchor resolution."""

import json

import numpy as np
import pytest

from pcd_utils.matrix import (
    row_major_to_matrix,
    matrix_to_row_major,
    validate_transform,
    extract_position,
    extract_basis,
    translate_matrix,
    transform_points,
    float32_rounding_error,
)
from pcd_pipeline.anchor import resolve_transforms, select_anchor
from pcd_pipeline.errors import DuplicateNodeError, EmptyPoseSetError, ParseError
from pcd_pipeline.parse_poses import RawPose, parse_pose_document


def pose_entries(tx, ty, tz, basis=None):
    """Row-major 16 entries for a pose with the given translation."""
    matrix = np.eye(4)
    if basis is not None:
        matrix[:3, :3] = basis
    matrix[:3, 3] = [tx, ty, tz]
    return matrix.flatten().tolist()


def pose_document(*poses):
    return json.dumps({
        "poses": [{"nodeUuid": node_id, "optPos": entries} for node_id, entries in poses]
    }).encode()


class TestMatrixConversion:
    """Tests for matrix format conversion."""

    def test_row_major_to_matrix(self):
        """Row-major translation entries land in the last column."""
        data = [
            1, 0, 0, 10,
            0, 1, 0, 20,
            0, 0, 1, 30,
            0, 0, 0, 1,
        ]
        result = row_major_to_matrix(data)

        assert result.shape == (4, 4)
        assert result.dtype == np.float64
        np.testing.assert_array_equal(result[:3, 3], [10, 20, 30])
        np.testing.assert_array_equal(result[3], [0, 0, 0, 1])

    def test_wrong_length(self):
        with pytest.raises(ValueError, match="16 elements"):
            row_major_to_matrix([1, 2, 3])

    def test_matrix_to_row_major(self):
        matrix = np.eye(4)
        matrix[0, 3] = 1.0
        matrix[1, 3] = 2.0
        matrix[2, 3] = 3.0

        result = matrix_to_row_major(matrix)

        assert len(result) == 16
        assert result[3] == 1.0
        assert result[7] == 2.0
        assert result[11] == 3.0

    def test_large_values_keep_float64(self):
        """UTM-scale values survive conversion bit for bit."""
        utm = 3620823.7240922246
        result = row_major_to_matrix(pose_entries(utm, 0, 0))

        assert result[0, 3] == utm


class TestTransformValidation:
    """Tests for transform matrix validation."""

    def test_valid_identity(self):
        assert validate_transform(np.eye(4))
        assert validate_transform(np.eye(4), rigid=True)

    def test_scaled_basis_is_affine_not_rigid(self):
        matrix = np.eye(4)
        matrix[0, 0] = 2.0

        assert validate_transform(matrix)
        assert not validate_transform(matrix, rigid=True)

    def test_invalid_nan(self):
        matrix = np.eye(4)
        matrix[0, 0] = np.nan

        assert not validate_transform(matrix)

    def test_invalid_bottom_row(self):
        matrix = np.eye(4)
        matrix[3, 0] = 0.1

        assert not validate_transform(matrix)


class TestMatrixOps:
    """Tests for translation and point application helpers."""

    def test_extract_position_and_basis(self):
        basis = [[0, -1, 0], [1, 0, 0], [0, 0, 1]]
        matrix = row_major_to_matrix(pose_entries(1.5, 2.5, 3.5, basis))

        np.testing.assert_array_almost_equal(extract_position(matrix), [1.5, 2.5, 3.5])
        np.testing.assert_array_almost_equal(extract_basis(matrix), basis)

    def test_translate_matrix_leaves_basis(self):
        basis = [[0, -1, 0], [1, 0, 0], [0, 0, 1]]
        matrix = row_major_to_matrix(pose_entries(10, 20, 30, basis))

        result = translate_matrix(matrix, np.array([1.0, 2.0, 3.0]))

        np.testing.assert_array_equal(result[:3, 3], [9, 18, 27])
        np.testing.assert_array_equal(result[:3, :3], matrix[:3, :3])
        np.testing.assert_array_equal(matrix[:3, 3], [10, 20, 30])

    def test_transform_points(self):
        """90-degree yaw maps local +X onto +Y, then translates."""
        basis = [[0, -1, 0], [1, 0, 0], [0, 0, 1]]
        matrix = row_major_to_matrix(pose_entries(1, 1, 1, basis)).astype(np.float32)

        result = transform_points(matrix, np.array([[1, 0, 0], [0, 0, 2]]))

        assert result.dtype == np.float32
        np.testing.assert_array_almost_equal(result, [[1, 2, 1], [1, 1, 3]])

    def test_float32_rounding_error(self):
        """Millions-scale coordinates lose centimeters in float32."""
        error = float32_rounding_error(np.array([3620823.7240922246, 1.25]))

        assert error[0] > 0.01
        assert error[1] == 0.0


class TestPoseParsing:
    """Tests for the pose document parser."""

    def test_parse_valid_document(self):
        data = pose_document(("a", pose_entries(1, 2, 3)), ("b", pose_entries(4, 5, 6)))

        poses = parse_pose_document(data)

        assert [p.node_id for p in poses] == ["a", "b"]
        assert len(poses[0].matrix_entries) == 16
        assert poses[1].matrix_entries[3] == 4.0

    def test_snake_case_keys(self):
        data = json.dumps({"poses": [{"node_uuid": "a", "opt_pos": pose_entries(0, 0, 0)}]}).encode()

        poses = parse_pose_document(data)

        assert poses[0].node_id == "a"

    def test_empty_list_is_valid(self):
        assert parse_pose_document(b'{"poses": []}') == []

    def test_invalid_json(self):
        with pytest.raises(ParseError, match="Invalid JSON"):
            parse_pose_document(b"{not json")

    def test_missing_poses_field(self):
        with pytest.raises(ParseError, match="poses"):
            parse_pose_document(b'{"nodes": []}')

    def test_top_level_not_object(self):
        with pytest.raises(ParseError):
            parse_pose_document(b"[1, 2, 3]")

    def test_wrong_entry_count_names_record(self):
        data = pose_document(("a", pose_entries(0, 0, 0)), ("b", [1.0] * 15))

        with pytest.raises(ParseError) as excinfo:
            parse_pose_document(data)

        assert excinfo.value.record_index == 1
        assert excinfo.value.node_id == "b"
        assert "pose record 1" in str(excinfo.value)

    def test_missing_node_id(self):
        data = json.dumps({"poses": [{"optPos": pose_entries(0, 0, 0)}]}).encode()

        with pytest.raises(ParseError) as excinfo:
            parse_pose_document(data)

        assert excinfo.value.record_index == 0

    def test_missing_matrix(self):
        data = json.dumps({"poses": [{"nodeUuid": "a"}]}).encode()

        with pytest.raises(ParseError) as excinfo:
            parse_pose_document(data)

        assert excinfo.value.record_index == 0

    @pytest.mark.parametrize("bad", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_entry(self, bad):
        entries = ", ".join(["1.0"] * 15 + [bad])
        data = f'{{"poses": [{{"nodeUuid": "a", "optPos": [{entries}]}}]}}'.encode()

        with pytest.raises(ParseError) as excinfo:
            parse_pose_document(data)

        assert excinfo.value.record_index == 0

    def test_non_numeric_entry(self):
        entries = pose_entries(0, 0, 0)
        entries[5] = "1.0"
        data = pose_document(("a", entries))

        with pytest.raises(ParseError):
            parse_pose_document(data)

    def test_record_not_object(self):
        with pytest.raises(ParseError) as excinfo:
            parse_pose_document(b'{"poses": [42]}')

        assert excinfo.value.record_index == 0

    def test_empty_node_id_is_accepted(self):
        data = pose_document(("", pose_entries(4, 5, 6)), ("b", pose_entries(1, 2, 3)))

        poses = parse_pose_document(data)
        resolved = resolve_transforms(poses)

        assert poses[0].node_id == ""
        assert set(resolved.transforms) == {"", "b"}
        np.testing.assert_allclose(resolved.transforms[""].translation, [3, 3, 3])


class TestAnchorSelection:
    """Tests for anchor choice and re-centering."""

    def raw(self, node_id, tx, ty, tz, basis=None):
        return RawPose(node_id=node_id, matrix_entries=tuple(pose_entries(tx, ty, tz, basis)))

    def test_minimum_x_wins(self):
        poses = [self.raw("a", 5, 0, 0), self.raw("b", 2, 9, 9), self.raw("c", 7, -5, 0)]

        resolved = resolve_transforms(poses)

        assert resolved.anchor.node_id == "b"

    def test_tie_broken_by_y(self):
        """Given [(5,2,_),(5,1,_)] the second pose is the anchor."""
        poses = [self.raw("first", 5, 2, 0), self.raw("second", 5, 1, 0)]

        resolved = resolve_transforms(poses)

        assert resolved.anchor.node_id == "second"

    def test_z_not_considered(self):
        """Equal X and Y keep the earliest pose even when its Z is larger."""
        matrices = [
            row_major_to_matrix(pose_entries(1, 1, 100)),
            row_major_to_matrix(pose_entries(1, 1, -100)),
        ]

        assert select_anchor(matrices) == 0

    def test_anchor_recentered_to_origin(self):
        poses = [self.raw("a", 3620823.72, 5812345.12, 112.25), self.raw("b", 3620830.0, 5812340.0, 110.0)]

        resolved = resolve_transforms(poses)

        t = resolved.transforms["a"].translation
        assert t[0] == 0.0
        assert t[1] == 0.0
        assert t[2] == 0.0

    def test_recentering_is_pure_translation(self):
        basis = [[0, -1, 0], [1, 0, 0], [0, 0, 1]]
        poses = [
            self.raw("a", 1000.5, 2000.25, 10.0),
            self.raw("b", 1010.5, 1990.25, 12.0, basis),
        ]

        resolved = resolve_transforms(poses)

        b = resolved.transforms["b"]
        assert b.matrix.dtype == np.float32
        np.testing.assert_array_equal(b.translation, [10.0, -10.0, 2.0])
        np.testing.assert_array_equal(b.basis, np.array(basis, dtype=np.float32))
        np.testing.assert_array_equal(b.matrix[3], [0, 0, 0, 1])

    def test_precision_preserved_at_utm_scale(self):
        """Offsets between UTM-scale nodes keep sub-millimeter precision."""
        poses = [
            self.raw("a", 3620823.7240922246, 5812345.1234567, 0),
            self.raw("b", 3620823.7340922246, 5812345.1334567, 0),
        ]

        resolved = resolve_transforms(poses)

        np.testing.assert_allclose(resolved.transforms["b"].translation[:2], [0.01, 0.01], atol=1e-6)
        np.testing.assert_array_equal(
            resolved.anchor.translation[:2], [3620823.7240922246, 5812345.1234567]
        )

    def test_anchor_to_world(self):
        poses = [self.raw("a", 1e6, 2e6, 5)]

        resolved = resolve_transforms(poses)

        np.testing.assert_array_equal(resolved.anchor.to_world(np.array([[1, 2, 3]])), [[1e6 + 1, 2e6 + 2, 8]])

    def test_empty_pose_set(self):
        with pytest.raises(EmptyPoseSetError):
            resolve_transforms([])

    def test_duplicate_node(self):
        poses = [self.raw("a", 0, 0, 0), self.raw("b", 1, 1, 1), self.raw("a", 2, 2, 2)]

        with pytest.raises(DuplicateNodeError) as excinfo:
            resolve_transforms(poses)

        assert excinfo.value.node_id == "a"
