import pytest

from kubetester.mpijobs import SchemaError, mpi_job_succeeded, new_unstructured


def test_succeeded_true():
    obj = {"status": {"conditions": [{"type": "Succeeded", "status": "True"}]}}
    assert mpi_job_succeeded(obj) is True


def test_succeeded_false():
    obj = {"status": {"conditions": [{"type": "Succeeded", "status": "False"}]}}
    assert mpi_job_succeeded(obj) is False


def test_no_status_is_false():
    assert mpi_job_succeeded({}) is False


def test_other_conditions_only_is_false():
    obj = {"status": {"conditions": [{"type": "Running", "status": "True"}]}}
    assert mpi_job_succeeded(obj) is False


def test_succeeded_without_status_is_skipped():
    obj = {
        "status": {
            "conditions": [
                {"type": "Succeeded"},
                {"type": "Succeeded", "status": "True"},
            ]
        }
    }
    assert mpi_job_succeeded(obj) is True


def test_conditions_not_a_list_raises():
    with pytest.raises(SchemaError):
        mpi_job_succeeded({"status": {"conditions": "bad"}})


def test_status_not_a_mapping_raises():
    with pytest.raises(SchemaError):
        mpi_job_succeeded({"status": "bad"})


def test_condition_type_not_string_raises():
    with pytest.raises(SchemaError):
        mpi_job_succeeded({"status": {"conditions": [{"type": 5}]}})


def test_new_unstructured_fields():
    obj = new_unstructured("pytorch-training-single-node", "default")
    assert obj["apiVersion"] == "kubeflow.org/v2beta1"
    assert obj["kind"] == "MPIJob"
    assert obj["metadata"] == {
        "name": "pytorch-training-single-node",
        "namespace": "default",
    }
    assert mpi_job_succeeded(obj) is False