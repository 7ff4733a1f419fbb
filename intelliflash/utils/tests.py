"""
Tests for measurement extraction.
"""
import json
import logging
import unittest

from .data_extraction import MeasurementMapper, network_rule, pool_performance_rule, entity_rule
from ..config.analytics_categories import AnalyticsCategory
from ..core.exceptions import MalformedResponse, UnknownCategory
from ..read.json_reader import JsonReader


def decode(payload, category=AnalyticsCategory.SYSTEM):
    return JsonReader.decode(json.dumps(payload), category)


class TestPathRules(unittest.TestCase):

    def test_network_interface_path(self):
        tags, field = network_rule("Controller-B/IG/mgmt0/Transmit_Mbps".split('/'))
        self.assertEqual(tags, {'controller': 'Controller-B', 'interface': 'mgmt0'})
        self.assertEqual(field, 'Transmit_Mbps')

    def test_network_totals_path(self):
        tags, field = network_rule("Controller-A/Total/Receive_Mbps".split('/'))
        self.assertEqual(tags, {'controller': 'Controller-A'})
        self.assertEqual(field, 'Total_Receive_Mbps')

    def test_network_interface_path_too_short(self):
        with self.assertRaises(MalformedResponse):
            network_rule("Controller-A/IG/mgmt0".split('/'))

    def test_pool_performance_path_too_short(self):
        with self.assertRaises(MalformedResponse):
            pool_performance_rule(["pool-a", "Data"])

    def test_entity_rule(self):
        tags, field = entity_rule("DATASET", "Pool-A/Project/Dataset")(["Read_IOPS"])
        self.assertEqual(tags, {'dataset': 'Pool-A/Project/Dataset'})
        self.assertEqual(field, 'Read_IOPS')


class TestMeasurementMapper(unittest.TestCase):
    """Test cases for MeasurementMapper."""

    def setUp(self):
        self.mapper = MeasurementMapper("array01", clock=lambda: 1700000000.9)

    def test_network_example(self):
        elements = decode([{
            "systemAnalyticsType": "NETWORK",
            "timestamps": [1565474000000],
            "datapoints": {"Controller-B/IG/mgmt0/Transmit_Mbps": [0]},
        }])
        records = self.mapper.map(elements, AnalyticsCategory.SYSTEM)

        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record.name, "NETWORK")
        self.assertEqual(record.tags, {'array': 'array01', 'controller': 'Controller-B', 'interface': 'mgmt0'})
        self.assertEqual(record.fields, {'Transmit_Mbps': 0})
        self.assertEqual(record.timestamp, 1565474000)

    def test_pool_performance_example(self):
        elements = decode([{
            "systemAnalyticsType": "POOL_PERFORMANCE",
            "timestamps": [1565474000000],
            "datapoints": {"pool-a/Data/Write_MBps": [0.12]},
        }])
        record = self.mapper.map(elements, AnalyticsCategory.SYSTEM)[0]

        self.assertEqual(record.name, "POOL_PERFORMANCE")
        self.assertEqual(record.tags, {'array': 'array01', 'pool': 'pool-a', 'disktype': 'Data'})
        self.assertEqual(record.fields, {'Write_MBps': 0.12})

    def test_cpu_example(self):
        elements = decode([{
            "systemAnalyticsType": "CPU",
            "timestamps": [1565473945000],
            "datapoints": {"Controller-A/Total_Used": [0]},
            "averages": {"Controller-A/Total_Used": 0},
        }])
        record = self.mapper.map(elements, AnalyticsCategory.SYSTEM)[0]
        self.assertEqual(record.tags, {'array': 'array01', 'controller': 'Controller-A'})
        self.assertEqual(record.fields, {'Total_Used': 0})
        self.assertEqual(record.timestamp, 1565473945)

    def test_samples_are_floats(self):
        """Integral and fractional samples of one series share a field type."""
        elements = decode([{
            "systemAnalyticsType": "NETWORK",
            "timestamps": [1565474000000, 1565474060000],
            "datapoints": {"Controller-B/IG/mgmt0/Transmit_Mbps": [0, 0.12]},
        }])
        records = self.mapper.map(elements, AnalyticsCategory.SYSTEM)

        values = [r.fields['Transmit_Mbps'] for r in records]
        self.assertEqual(values, [0.0, 0.12])
        for value in values:
            self.assertIs(type(value), float)

    def test_record_count_matches_samples(self):
        """One record per (element, path, sample index)."""
        elements = decode([
            {
                "systemAnalyticsType": "CPU",
                "timestamps": [1000, 2000, 3000],
                "datapoints": {
                    "Controller-A/Total_Used": [1, 2, 3],
                    "Controller-B/Total_Used": [4, 5, 6],
                },
            },
            {
                "systemAnalyticsType": "CACHE_HITS",
                "timestamps": [1999, 2999],
                "datapoints": {"Controller-A/ARC_Hits": [7, 8]},
            },
        ])
        records = self.mapper.map(elements, AnalyticsCategory.SYSTEM)

        self.assertEqual(len(records), 3 + 3 + 2)
        self.assertEqual(sorted({r.timestamp for r in records}), [1, 2, 3])
        for record in records:
            self.assertEqual(len(record.fields), 1)
            self.assertEqual(record.tags['array'], 'array01')

    def test_mapping_is_deterministic(self):
        payload = [{
            "systemAnalyticsType": "NETWORK",
            "timestamps": [1000, 2000],
            "datapoints": {
                "Controller-A/IG/ixgbe0/Receive_Mbps": [1, 2],
                "Controller-A/Total/Receive_Mbps": [3, 4],
            },
        }]
        first = {r.as_tuple() for r in self.mapper.map(decode(payload), AnalyticsCategory.SYSTEM)}
        second = {r.as_tuple() for r in self.mapper.map(decode(payload), AnalyticsCategory.SYSTEM)}
        self.assertEqual(first, second)
        self.assertEqual(len(first), 4)

    def test_unrecognized_sub_category(self):
        elements = decode([{
            "systemAnalyticsType": "REPLICATION",
            "timestamps": [1000],
            "datapoints": {"a/b/c": [1]},
        }])
        records = self.mapper.map(elements, AnalyticsCategory.SYSTEM)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].name, "REPLICATION")
        self.assertEqual(records[0].tags, {'array': 'array01'})
        self.assertEqual(records[0].fields, {})

    def test_short_path_is_malformed(self):
        elements = decode([{
            "systemAnalyticsType": "CPU",
            "timestamps": [1000],
            "datapoints": {"Total_Used": [1]},
        }])
        with self.assertRaises(MalformedResponse):
            self.mapper.map(elements, AnalyticsCategory.SYSTEM)

    def test_null_sample_kept(self):
        elements = decode([{
            "systemAnalyticsType": "CPU",
            "timestamps": [1000],
            "datapoints": {"Controller-A/Total_Used": [None]},
        }])
        record = self.mapper.map(elements, AnalyticsCategory.SYSTEM)[0]
        self.assertEqual(record.fields, {'Total_Used': None})

    def test_data_analytics(self):
        elements = decode([{
            "entityType": "VM",
            "entityName": "Pool-A/vm-test",
            "timestamps": [1565474000000, 1565474060000],
            "datapoints": {"Read_IOPS": [10, 12], "Write_IOPS": [3, 4]},
        }], AnalyticsCategory.DATA)
        records = self.mapper.map(elements, AnalyticsCategory.DATA)

        self.assertEqual(len(records), 4)
        for record in records:
            self.assertEqual(record.name, "VM")
            self.assertEqual(record.tags, {'array': 'array01', 'vm': 'Pool-A/vm-test'})
        self.assertIn(('Read_IOPS', 12), [next(iter(r.fields.items())) for r in records])

    def test_array_tag_wins(self):
        elements = decode([{
            "entityType": "ARRAY",
            "entityName": "somewhere-else",
            "timestamps": [1000],
            "datapoints": {"Read_IOPS": [1]},
        }], AnalyticsCategory.DATA)
        record = self.mapper.map(elements, AnalyticsCategory.DATA)[0]
        self.assertEqual(record.tags, {'array': 'array01'})

    def test_capacity(self):
        elements = decode([
            {"name": "pool-a", "availableSize": 100, "totalSize": 400},
            {"name": "pool-b", "availableSize": 5, "totalSize": 10},
        ], AnalyticsCategory.CAPACITY)
        records = self.mapper.map(elements, AnalyticsCategory.CAPACITY)

        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].name, "CAPACITY")
        self.assertEqual(records[0].tags, {'array': 'array01', 'pool': 'pool-a'})
        self.assertEqual(records[0].fields, {'available_size': 100, 'total_size': 400})
        for value in records[0].fields.values():
            self.assertIs(type(value), int)
        self.assertEqual(records[0].timestamp, 1700000000)

    def test_identity_has_no_measurements(self):
        with self.assertRaises(UnknownCategory):
            self.mapper.map([], AnalyticsCategory.IDENTITY)


if __name__ == '__main__':
    logging.basicConfig(level=logging.ERROR)
    unittest.main()
