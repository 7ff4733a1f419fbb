"""
Tests for configuration and the poll orchestrator.
"""
import json
import logging
import os
import unittest
from argparse import Namespace
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import MagicMock, patch

import requests

from .collector import MetricsCollector, PollState
from .config import CollectorConfig
from .exceptions import ConnectionFailure, MissingCredentials, NoServersConfigured
from .writer_config import WriterConfig
from ..config import Settings
from ..writer.accumulator import MetricAccumulator

CPU_BODY = json.dumps([{
    "systemAnalyticsType": "CPU",
    "timestamps": [1565473945000, 1565474005000],
    "datapoints": {"Controller-A/Total_Used": [0, 3]},
}]).encode()


def fake_response(status_code=200, body=b"[]"):
    response = MagicMock()
    response.status_code = status_code
    response.iter_content.side_effect = lambda chunk_size=1: iter([body])
    return response


def routing_session(handlers):
    """Session mock that answers per host; a handler may raise."""
    session = MagicMock()

    def request(method, url, **kwargs):
        host = url.split('/')[2]
        handler = handlers[host]
        if isinstance(handler, Exception):
            raise handler
        return handler

    session.request.side_effect = request
    return session


class TestCollectorConfig(unittest.TestCase):

    def test_defaults(self):
        config = CollectorConfig()
        self.assertEqual(config.servers, [])
        self.assertEqual(config.response_timeout, 5)
        self.assertEqual(config.array_tag, 'identity')
        self.assertEqual(config.system_metrics, ['NETWORK', 'POOL_PERFORMANCE', 'CPU', 'CACHE_HITS'])

    def test_include_and_exclude(self):
        config = CollectorConfig(system_metrics_include=['cpu', 'network'], system_metrics_exclude=['NETWORK'])
        self.assertEqual(config.system_metrics, ['CPU'])

    def test_excluding_everything_is_rejected(self):
        with self.assertRaises(ValueError):
            CollectorConfig(system_metrics_exclude=['NETWORK', 'POOL_PERFORMANCE', 'CPU', 'CACHE_HITS'])

    def test_interval_below_one_minute(self):
        with self.assertRaises(ValueError):
            CollectorConfig(interval_time=30)

    def test_response_timeout_durations(self):
        self.assertEqual(CollectorConfig(response_timeout='5s').response_timeout, 5.0)
        self.assertEqual(CollectorConfig(response_timeout='500ms').response_timeout, 0.5)
        self.assertEqual(CollectorConfig(response_timeout='10').response_timeout, 10.0)

    def test_response_timeout_not_a_duration(self):
        for value in ('soon', '5 minutes', None, [5]):
            with self.assertRaises(ValueError):
                CollectorConfig(response_timeout=value)

    def test_response_timeout_from_settings(self):
        args = Namespace(servers=None, username=None, password=None, intervalTime=None,
                         responseTimeout=None, insecureSkipVerify=False, debug=False)
        config = CollectorConfig.from_args(args, {'response_timeout': '7s'})
        self.assertEqual(config.response_timeout, 7.0)

    def test_bad_array_tag(self):
        with self.assertRaises(ValueError):
            CollectorConfig(array_tag='serial')

    def test_cert_without_key(self):
        with self.assertRaises(ValueError):
            CollectorConfig(tls_cert='/etc/cert.pem')

    def test_groups_from_list(self):
        config = CollectorConfig(data_metrics=[{'protocols': ['nfs']}, {'vms': ['Pool-A/vm1']}])
        self.assertEqual(list(config.data_metrics), ['data-1', 'data-2'])
        self.assertEqual(config.data_metrics['data-1'].protocols, ['NFS'])

    def test_from_args_overrides_settings(self):
        args = Namespace(servers=['array02'], username=None, password='cli-secret', intervalTime=None,
                         insecureSkipVerify=False, debug=False)
        settings = {'servers': ['array01'], 'username': 'admin', 'password': 'file-secret', 'interval_time': 120}
        config = CollectorConfig.from_args(args, settings)
        self.assertEqual(config.servers, ['array02'])
        self.assertEqual(config.username, 'admin')
        self.assertEqual(config.password, 'cli-secret')
        self.assertEqual(config.interval_time, 120)
        self.assertFalse(config.insecure_skip_verify)

    def test_to_dict_redacts_password(self):
        self.assertEqual(CollectorConfig(password='secret').to_dict()['password'], '[REDACTED]')


class TestSettings(unittest.TestCase):

    def setUp(self):
        self.temp_dir = TemporaryDirectory()
        self.temp_path = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_yaml_file(self):
        config_file = self.temp_path / "intelliflash.yaml"
        config_file.write_text("servers:\n  - array01\nusername: admin\ndata_metrics:\n  prod:\n    protocols: [nfs]\n")
        settings = Settings(str(config_file), from_env=False)
        config = CollectorConfig.from_dict(settings.as_dict())
        self.assertEqual(config.servers, ['array01'])
        self.assertEqual(config.data_metrics['prod'].protocols, ['NFS'])

    def test_invalid_yaml(self):
        config_file = self.temp_path / "broken.yaml"
        config_file.write_text("servers: [array01\n")
        with self.assertRaises(ValueError):
            Settings(str(config_file), from_env=False)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            Settings(str(self.temp_path / "nope.yaml"), from_env=False)

    def test_environment(self):
        env = {'INTELLIFLASH_SERVERS': 'array01 array02:8443', 'INTELLIFLASH_USERNAME': 'monitor'}
        with patch.dict(os.environ, env):
            settings = Settings()
        self.assertEqual(settings.get('servers'), ['array01', 'array02:8443'])
        self.assertEqual(settings.get('username'), 'monitor')


class TestWriterConfig(unittest.TestCase):

    def test_influxdb_requires_connection_details(self):
        with self.assertRaises(ValueError):
            WriterConfig(output_format='influxdb', influxdb_url='http://db:8181')

    def test_prometheus_only(self):
        config = WriterConfig(output_format='prometheus', prometheus_port=9100)
        self.assertEqual(config.to_dict(), {'output_format': 'prometheus', 'prometheus_port': 9100})

    def test_unknown_output(self):
        with self.assertRaises(ValueError):
            WriterConfig(output_format='graphite')


class TestMetricsCollector(unittest.TestCase):
    """Test cases for the poll orchestrator."""

    def make_collector(self, session, **config_kwargs):
        config_kwargs.setdefault('username', 'admin')
        config_kwargs.setdefault('password', 'secret')
        config_kwargs.setdefault('array_tag', 'address')
        return MetricsCollector(CollectorConfig(**config_kwargs), session=session, clock=lambda: 1700000000)

    def test_no_servers(self):
        session = MagicMock()
        collector = self.make_collector(session, servers=[])
        with self.assertRaises(NoServersConfigured):
            collector.gather(MetricAccumulator())
        self.assertEqual(session.request.call_count, 0)
        self.assertEqual(collector.state, PollState.IDLE)

    def test_single_server(self):
        session = routing_session({'array01': fake_response(body=CPU_BODY)})
        collector = self.make_collector(session, servers=['array01'])
        accumulator = MetricAccumulator()

        result = collector.gather(accumulator)

        self.assertTrue(result.success)
        self.assertEqual(result.records_emitted, 2)
        self.assertEqual(len(accumulator), 2)
        self.assertEqual({r.timestamp for r in accumulator.records}, {1565473945, 1565474005})
        self.assertEqual(collector.state, PollState.SETTLED)

    def test_missing_credentials_reported_per_server(self):
        session = routing_session({'array02': fake_response(body=CPU_BODY)})
        collector = self.make_collector(session, servers=['array01', 'https://admin:pw@array02'],
                                        username=None, password=None)
        accumulator = MetricAccumulator()

        result = collector.gather(accumulator)

        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].server, 'array01')
        self.assertIsInstance(result.errors[0].error, MissingCredentials)
        self.assertEqual(accumulator.errors, result.errors)
        # The other server is still collected
        self.assertEqual(len(accumulator), 2)
        self.assertTrue(all(r.tags['array'] == 'array02' for r in accumulator.records))

    def test_connection_failure_does_not_block_other_server(self):
        session = routing_session({
            'array01': requests.ConnectionError("connection refused"),
            'array02': fake_response(body=CPU_BODY),
        })
        collector = self.make_collector(session, servers=['array01', 'array02'])
        accumulator = MetricAccumulator()

        result = collector.gather(accumulator)

        self.assertFalse(result.success)
        self.assertEqual([(e.server, e.step) for e in result.errors], [('array01', 'system')])
        self.assertIsInstance(result.errors[0].error, ConnectionFailure)
        self.assertEqual(result.records_emitted, 2)

    def test_steps_follow_configuration(self):
        session = routing_session({'array01': fake_response(body=b"[]")})
        collector = self.make_collector(
            session, servers=['array01'], array_tag='identity',
            data_metrics={'prod': {'protocols': ['nfs']}}, capacity_metrics={'all': {}},
        )

        result = collector.gather(MetricAccumulator())

        self.assertTrue(result.success)
        urls = [c.args[1].rsplit('/', 1)[1] for c in session.request.call_args_list]
        self.assertEqual(urls, ['listSystemProperties', 'getOneMinuteSystemAnalyticsHistory',
                                'getOneMinuteDataAnalyticsHistory', 'listPools'])

    def test_malformed_response_is_reported(self):
        session = routing_session({'array01': fake_response(body=b"This is not JSON at all")})
        collector = self.make_collector(session, servers=['array01'])
        accumulator = MetricAccumulator()

        result = collector.gather(accumulator)

        self.assertEqual(len(result.errors), 1)
        self.assertEqual(len(accumulator), 0)

    def test_unexpected_step_error_is_captured(self):
        session = routing_session({'array01': fake_response(body=CPU_BODY)})
        collector = self.make_collector(session, servers=['array01'], array_tag='identity')

        with patch('intelliflash.core.collector.LiveAPIDataSource.resolve_identity',
                   side_effect=RuntimeError("boom")):
            result = collector.gather(MetricAccumulator())

        self.assertEqual([(e.server, e.step) for e in result.errors], [('array01', 'identity')])
        # System analytics still ran
        self.assertEqual(result.records_emitted, 2)

    def test_run_single_collection_writes(self):
        session = routing_session({'array01': fake_response(body=CPU_BODY)})
        writer = MagicMock()
        writer.write.return_value = True
        collector = MetricsCollector(
            CollectorConfig(servers=['array01'], username='admin', password='secret', array_tag='address'),
            writer=writer, session=session,
        )

        self.assertTrue(collector.run_single_collection())
        records = writer.write.call_args.args[0]
        self.assertEqual(len(records), 2)

    def test_run_continuous_stops_after_max_iterations(self):
        session = routing_session({'array01': fake_response(body=CPU_BODY)})
        writer = MagicMock()
        writer.write.return_value = True
        collector = MetricsCollector(
            CollectorConfig(servers=['array01'], username='admin', password='secret',
                            array_tag='address', max_iterations=1),
            writer=writer, session=session,
        )

        collector.run_continuous()

        self.assertEqual(collector.collections_completed, 1)
        writer.write.assert_called_once()
        writer.close.assert_called_once()
        session.close.assert_called_once()


if __name__ == '__main__':
    logging.basicConfig(level=logging.ERROR)
    unittest.main()
