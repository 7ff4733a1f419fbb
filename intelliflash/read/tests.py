"""
Tests for the JSON reader module.
"""
import json
import logging
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from .json_reader import JsonReader
from ..config.analytics_categories import AnalyticsCategory
from ..core.exceptions import MalformedResponse
from ..schema.models import AnalyticsElement


CPU_RESPONSE = [
    {
        "systemAnalyticsType": "CPU",
        "timestamps": [1565473945000],
        "datapoints": {"Controller-A/Total_Used": [0]},
        "averages": {"Controller-A/Total_Used": 0.25},
    }
]


class TestJsonReader(unittest.TestCase):
    """Test cases for JsonReader class."""

    def setUp(self):
        """Set up test environment."""
        self.temp_dir = TemporaryDirectory()
        self.temp_path = Path(self.temp_dir.name)

        self.json_file = self.temp_path / "cpu.json"
        with open(self.json_file, 'w', encoding='utf-8') as f:
            json.dump(CPU_RESPONSE, f)

    def tearDown(self):
        """Clean up after tests."""
        self.temp_dir.cleanup()

    def test_read_file(self):
        """Test reading a saved response returns the raw body."""
        body = JsonReader.read_file(self.json_file)
        self.assertIsInstance(body, bytes)
        self.assertEqual(json.loads(body), CPU_RESPONSE)

    def test_decode_system_element(self):
        elements = JsonReader.decode(JsonReader.read_file(self.json_file), AnalyticsCategory.SYSTEM)
        self.assertEqual(len(elements), 1)
        element = elements[0]
        self.assertIsInstance(element, AnalyticsElement)
        self.assertEqual(element.system_analytics_type, "CPU")
        self.assertEqual(element.analytics_type, "CPU")
        self.assertEqual(element.timestamps, [1565473945000])
        self.assertEqual(element.datapoints, {"Controller-A/Total_Used": [0]})
        self.assertEqual(element.averages["Controller-A/Total_Used"], 0.25)

    def test_decode_data_element(self):
        body = json.dumps([{
            "entityType": "DATASET",
            "entityName": "Pool-A/Project/Dataset",
            "timestamps": [1000, 2000],
            "datapoints": {"Read_IOPS": [1.5, None]},
            "averages": {"Read_IOPS": 1.5},
        }])
        element = JsonReader.decode(body, AnalyticsCategory.DATA)[0]
        self.assertEqual(element.entity_type, "DATASET")
        self.assertEqual(element.entity_name, "Pool-A/Project/Dataset")
        self.assertEqual(element.analytics_type, "DATASET")
        # Missing samples survive as None
        self.assertEqual(element.datapoints["Read_IOPS"], [1.5, None])

    def test_decode_capacity_element(self):
        body = json.dumps([{"name": "pool-a", "availableSize": 1024, "totalSize": 4096, "state": "ONLINE"}])
        element = JsonReader.decode(body, AnalyticsCategory.CAPACITY)[0]
        self.assertEqual(element.name, "pool-a")
        self.assertEqual(element.available_size, 1024)
        self.assertEqual(element.total_size, 4096)
        self.assertEqual(element.get_raw("state"), "ONLINE")

    def test_empty_array(self):
        self.assertEqual(JsonReader.decode(b"[]", AnalyticsCategory.SYSTEM), [])

    def test_null_collections_become_empty(self):
        body = json.dumps([{"systemAnalyticsType": "CPU", "timestamps": None, "datapoints": None}])
        element = JsonReader.decode(body, AnalyticsCategory.SYSTEM)[0]
        self.assertEqual(element.timestamps, [])
        self.assertEqual(element.datapoints, {})

    def test_invalid_json(self):
        """Test decoding a body that is not JSON."""
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(b"This is not JSON at all", AnalyticsCategory.SYSTEM)

    def test_invalid_utf8(self):
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(b"[\x80]", AnalyticsCategory.SYSTEM)

    def test_object_instead_of_array(self):
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(b'{"systemAnalyticsType": "CPU"}', AnalyticsCategory.SYSTEM)

    def test_non_object_element(self):
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(b'[1, 2]', AnalyticsCategory.SYSTEM)

    def test_sample_count_mismatch(self):
        body = json.dumps([{
            "systemAnalyticsType": "CPU",
            "timestamps": [1000, 2000],
            "datapoints": {"Controller-A/Total_Used": [1]},
        }])
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(body, AnalyticsCategory.SYSTEM)

    def test_non_numeric_sample(self):
        body = json.dumps([{
            "systemAnalyticsType": "CPU",
            "timestamps": [1000],
            "datapoints": {"Controller-A/Total_Used": ["high"]},
        }])
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(body, AnalyticsCategory.SYSTEM)

    def test_non_integer_timestamp(self):
        body = json.dumps([{"systemAnalyticsType": "CPU", "timestamps": ["yesterday"], "datapoints": {}}])
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(body, AnalyticsCategory.SYSTEM)

    def test_capacity_without_name(self):
        with self.assertRaises(MalformedResponse):
            JsonReader.decode(b'[{"availableSize": 1, "totalSize": 2}]', AnalyticsCategory.CAPACITY)


class TestDecodeIdentity(unittest.TestCase):

    def test_fqdn_property(self):
        body = json.dumps([{"name": "fqdn", "value": "array01.example.com"},
                           {"name": "hostname", "value": "array01"}])
        self.assertEqual(JsonReader.decode_identity(body), "array01.example.com")

    def test_hostname_and_domain(self):
        body = json.dumps({"hostname": "array01", "domainname": "lab.local"})
        self.assertEqual(JsonReader.decode_identity(body), "array01.lab.local")

    def test_hostname_only(self):
        body = json.dumps([{"name": "hostname", "value": "array01"}])
        self.assertEqual(JsonReader.decode_identity(body), "array01")

    def test_no_host_name(self):
        self.assertIsNone(JsonReader.decode_identity(b"[]"))

    def test_unexpected_payload(self):
        with self.assertRaises(MalformedResponse):
            JsonReader.decode_identity(b'"array01"')


if __name__ == '__main__':
    logging.basicConfig(level=logging.ERROR)
    unittest.main()
