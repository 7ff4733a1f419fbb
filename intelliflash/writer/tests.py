"""
Tests for the writer module.
"""
import json
import logging
import threading
import unittest
from unittest.mock import MagicMock

from influxdb_client_3 import Point

from .accumulator import MetricAccumulator
from .factory import WriterFactory
from .influxdb_writer import InfluxDBWriter
from .multi_writer import MultiWriter
from .prometheus_writer import PrometheusWriter
from ..config.analytics_categories import AnalyticsCategory
from ..core.writer_config import WriterConfig
from ..read.json_reader import JsonReader
from ..schema.models import MeasurementRecord
from ..utils.data_extraction import MeasurementMapper


def network_record(value=0, timestamp=1565474000):
    return MeasurementRecord(
        name='NETWORK',
        tags={'array': 'array01', 'controller': 'Controller-B', 'interface': 'mgmt0'},
        fields={'Transmit_Mbps': value},
        timestamp=timestamp,
    )


class TestMetricAccumulator(unittest.TestCase):

    def test_concurrent_adds(self):
        accumulator = MetricAccumulator()

        def add():
            for i in range(100):
                accumulator.add_records([network_record(i)])
            accumulator.add_error("failed")

        threads = [threading.Thread(target=add) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(accumulator), 800)
        self.assertEqual(len(accumulator.errors), 8)

    def test_records_returns_copy(self):
        accumulator = MetricAccumulator()
        accumulator.add_records([network_record()])
        accumulator.records.clear()
        self.assertEqual(len(accumulator), 1)


class TestInfluxDBWriter(unittest.TestCase):
    """Test cases for InfluxDBWriter with a mocked client."""

    def setUp(self):
        self.client = MagicMock()
        self.writer = InfluxDBWriter({
            'influxdb_url': 'http://db:8181',
            'influxdb_token': 'token',
            'influxdb_database': 'intelliflash',
        }, client=self.client)

    def test_to_point(self):
        point = InfluxDBWriter.to_point(network_record(0.5))
        self.assertIsInstance(point, Point)
        line = point.to_line_protocol()
        self.assertTrue(line.startswith('NETWORK,'))
        self.assertIn('array=array01', line)
        self.assertIn('interface=mgmt0', line)
        self.assertIn('Transmit_Mbps=0.5', line)
        self.assertTrue(line.endswith(' 1565474000'))

    def test_mapped_zero_sample_is_not_an_integer_field(self):
        body = json.dumps([{
            "systemAnalyticsType": "NETWORK",
            "timestamps": [1565474000000, 1565474060000],
            "datapoints": {"Controller-B/IG/mgmt0/Transmit_Mbps": [0, 0.12]},
        }])
        elements = JsonReader.decode(body, AnalyticsCategory.SYSTEM)
        records = MeasurementMapper('array01').map(elements, AnalyticsCategory.SYSTEM)

        lines = [InfluxDBWriter.to_point(r).to_line_protocol() for r in records]
        self.assertEqual(len(lines), 2)
        for line in lines:
            self.assertNotRegex(line, r'Transmit_Mbps=-?\d+i ')

    def test_to_point_without_fields(self):
        record = MeasurementRecord(name='REPLICATION', tags={'array': 'array01'}, fields={}, timestamp=1)
        self.assertIsNone(InfluxDBWriter.to_point(record))

    def test_to_point_null_sample(self):
        record = MeasurementRecord(name='CPU', tags={'array': 'array01'}, fields={'Total_Used': None}, timestamp=1)
        self.assertIsNone(InfluxDBWriter.to_point(record))

    def test_write(self):
        empty = MeasurementRecord(name='REPLICATION', tags={'array': 'array01'}, fields={}, timestamp=1)
        self.assertTrue(self.writer.write([network_record(1), network_record(2, 1565474060), empty]))
        self.client.write.assert_called_once()
        self.assertEqual(len(self.client.write.call_args.kwargs['record']), 2)

    def test_write_nothing_usable(self):
        empty = MeasurementRecord(name='REPLICATION', tags={'array': 'array01'}, fields={}, timestamp=1)
        self.assertTrue(self.writer.write([empty]))
        self.client.write.assert_not_called()

    def test_write_failure(self):
        self.client.write.side_effect = RuntimeError("unavailable")
        self.assertFalse(self.writer.write([network_record()]))

    def test_close(self):
        self.writer.close(timeout_seconds=5)
        self.client.close.assert_called_once()
        self.assertIsNone(self.writer.client)


class TestPrometheusWriter(unittest.TestCase):

    def setUp(self):
        self.writer = PrometheusWriter({'start_server': False})

    def test_latest_sample_exposed(self):
        self.assertTrue(self.writer.write([network_record(5, 1565474060), network_record(1, 1565474000)]))
        text = self.writer.render().decode()
        self.assertIn('intelliflash_network_transmit_mbps{', text)
        self.assertIn('controller="Controller-B"', text)
        self.assertIn('} 5.0', text)

    def test_skips_empty_and_null_fields(self):
        records = [
            MeasurementRecord(name='REPLICATION', tags={'array': 'a'}, fields={}, timestamp=1),
            MeasurementRecord(name='CPU', tags={'array': 'a', 'controller': 'c'}, fields={'Total_Used': None}, timestamp=1),
        ]
        self.assertTrue(self.writer.write(records))
        self.assertEqual(self.writer.dynamic_metrics, {})

    def test_mismatched_labels_are_reported(self):
        named = MeasurementRecord(name='VM', tags={'array': 'a', 'vm': 'Pool-A/vm1'},
                                  fields={'Read_IOPS': 1.0}, timestamp=1)
        unnamed = MeasurementRecord(name='VM', tags={'array': 'a'}, fields={'Read_IOPS': 2.0}, timestamp=2)

        with self.assertLogs('intelliflash.writer.prometheus_writer', level='WARNING') as logs:
            self.assertTrue(self.writer.write([named, unnamed]))
            self.assertTrue(self.writer.write([unnamed]))

        self.assertEqual(len(logs.records), 1)
        self.assertIn('intelliflash_vm_read_iops', logs.output[0])
        self.assertIn('vm="Pool-A/vm1"', self.writer.render().decode())

    def test_capacity_metric(self):
        record = MeasurementRecord(name='CAPACITY', tags={'array': 'a', 'pool': 'pool-a'},
                                   fields={'available_size': 10, 'total_size': 40}, timestamp=1)
        self.writer.write([record])
        self.assertIn('intelliflash_capacity_total_size', self.writer.dynamic_metrics)
        self.assertIn('intelliflash_capacity_available_size', self.writer.dynamic_metrics)


class TestMultiWriter(unittest.TestCase):

    def test_failure_in_one_writer(self):
        ok, broken = MagicMock(), MagicMock()
        ok.write.return_value = True
        broken.write.side_effect = RuntimeError("down")
        writer = MultiWriter([broken, ok])

        self.assertFalse(writer.write([network_record()]))
        ok.write.assert_called_once()

        writer.close()
        ok.close.assert_called_once()
        broken.close.assert_called_once()


class TestWriterFactory(unittest.TestCase):

    def test_prometheus(self):
        writer = WriterFactory.create_writer_from_config(WriterConfig(output_format='prometheus'))
        self.assertIsInstance(writer, PrometheusWriter)


if __name__ == '__main__':
    logging.basicConfig(level=logging.ERROR)
    unittest.main()
